import json
import random
from datetime import datetime, timedelta, timezone

from aggregate_counter import AggregateCounterSink, IngestAdapter, IngestConfig, InMemoryCounterStore, QueryAssembler, Resolution


def main():
    now = datetime.now(timezone.utc)
    store = InMemoryCounterStore()
    sink = AggregateCounterSink(
        store,
        IngestAdapter(IngestConfig(name_field="payload.page", increment_field="payload.hits")),
    )

    # Simulate a day of page-view events arriving out of order
    for _ in range(2000):
        page = random.choice(["home", "search", "checkout"])
        arrival = now - timedelta(minutes=random.randint(0, 24 * 60))
        sink.on_raw(json.dumps({"page": page, "hits": random.randint(1, 3)}).encode(), arrival)

    query = QueryAssembler(store)
    for name in sorted(store.list()):
        print(name, "hours:", query.range(name, Resolution.HOUR, 24))
        print(name, "days:", query.range(name, Resolution.DAY, 2))
    print(sink.get_stats())


if __name__ == "__main__":
    main()
