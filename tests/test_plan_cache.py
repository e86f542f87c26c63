import threading
from dataclasses import dataclass

from quickmap.mapping.plan_cache import PlanCache
from quickmap.mapping.resolver import resolve_plan
from quickmap.shapes.descriptor import ShapeCache


@dataclass
class Order:
    id: int
    total: float


@dataclass
class OrderDto:
    id: int
    total: str


def test_get_computes_once_and_returns_cached_plan():
    calls = []

    def counting_resolver(source, target):
        calls.append((source.cls, target.cls))
        return resolve_plan(source, target)

    cache = PlanCache(ShapeCache(), resolver=counting_resolver)
    first = cache.get(Order, OrderDto)
    second = cache.get(Order, OrderDto)

    assert first is second
    assert calls == [(Order, OrderDto)]
    assert (Order, OrderDto) in cache


def test_pairs_are_cached_independently():
    cache = PlanCache(ShapeCache())
    forward = cache.get(Order, OrderDto)
    backward = cache.get(OrderDto, Order)

    assert forward is not backward
    assert len(cache) == 2


def test_peek_does_not_compute():
    cache = PlanCache(ShapeCache())
    assert cache.peek(Order, OrderDto) is None
    assert len(cache) == 0


def test_concurrent_first_requests_converge_on_one_plan():
    barrier = threading.Barrier(8)

    def slow_resolver(source, target):
        barrier.wait(timeout=5)
        return resolve_plan(source, target)

    cache = PlanCache(ShapeCache(), resolver=slow_resolver)
    results = []
    lock = threading.Lock()

    def worker():
        plan = cache.get(Order, OrderDto)
        with lock:
            results.append(plan)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == 8
    assert all(plan is results[0] for plan in results)
    assert cache.peek(Order, OrderDto) is results[0]
