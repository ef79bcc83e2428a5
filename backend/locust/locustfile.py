"""
Locust Load Test Suite

Start the API with seeded events first:
  CREATE_TABLES_ON_STARTUP=true SEED_ON_STARTUP=true uvicorn ticket_service.main:app

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overselling
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random

import requests
from locust import HttpUser, task, between, tag, events

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None


def refresh_event_ids(client):
    resp = client.get("/tickets", name="/tickets")
    if resp.status_code == 200:
        for event in resp.json():
            if event["id"] not in EVENT_IDS:
                EVENT_IDS.append(event["id"])


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Verify no event was oversold once the run is over."""
    if not environment.host:
        return

    resp = requests.get(f"{environment.host}/tickets", timeout=10)
    oversold = [e for e in resp.json() if e["availableTickets"] < 0]
    print("\n" + "=" * 60)
    if oversold:
        print(f"OVERSOLD EVENTS: {oversold}")
        environment.process_exit_code = 1
    else:
        print("No event oversold.")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - every user books the same event

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After the run, availableTickets of that event must be exactly 0 once it
    sells out, never negative. 400 (sold out) and 409 (lock busy) are
    expected outcomes, not failures.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONCURRENCY_EVENT_ID
        if CONCURRENCY_EVENT_ID is None:
            refresh_event_ids(self.client)
            if EVENT_IDS:
                CONCURRENCY_EVENT_ID = EVENT_IDS[0]
                print(f"\nBooking against event {CONCURRENCY_EVENT_ID}\n")

    @tag("concurrency")
    @task
    def book_same_event(self):
        if CONCURRENCY_EVENT_ID is None:
            return

        with self.client.post(
            f"/tickets/{CONCURRENCY_EVENT_ID}/book",
            params={"count": random.randint(1, 3)},
            name="/tickets/{id}/book [contended]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice, with and without Redis, and compare P95/P99 of /tickets.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        refresh_event_ids(self.client)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        self.client.get("/tickets", name="/tickets [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/tickets/{random.choice(EVENT_IDS)}", name="/tickets/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, method, url, statuses, **kwargs):
        with self.client.request(method, url, catch_response=True, **kwargs) as resp:
            if resp.status_code in statuses:
                resp.success()
            else:
                resp.failure(f"Expected {statuses}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        self._expect("POST", "/tickets/999999/book", (404,), params={"count": 1},
                     name="/tickets/{id}/book [unknown]")

    @tag("edge")
    @task
    def zero_tickets(self):
        self._expect("POST", "/tickets/1/book", (400,), params={"count": 0},
                     name="/tickets/{id}/book [zero]")

    @tag("edge")
    @task
    def negative_tickets(self):
        self._expect("POST", "/tickets/1/book", (400,), params={"count": -5},
                     name="/tickets/{id}/book [negative]")

    @tag("edge")
    @task
    def huge_request(self):
        self._expect("POST", "/tickets/1/book", (400, 404), params={"count": 999999},
                     name="/tickets/{id}/book [huge]")

    @tag("edge")
    @task
    def missing_count(self):
        self._expect("POST", "/tickets/1/book", (400,), name="/tickets/{id}/book [no count]")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s
    """
    wait_time = between(1, 3)

    @task(50)
    def browse_events(self):
        refresh_event_ids(self.client)

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/tickets/{random.choice(EVENT_IDS)}", name="/tickets/{id}")

    @task(10)
    def book_tickets(self):
        if EVENT_IDS:
            self.client.post(
                f"/tickets/{random.choice(EVENT_IDS)}/book",
                params={"count": random.randint(1, 3)},
                name="/tickets/{id}/book",
            )
