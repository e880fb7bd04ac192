"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Setup: seed customers and one rental vehicle, then export
  LOAD_TEST_USER_IDS=2,3,4,...      customer ids to mint tokens for
  LOAD_TEST_VEHICLE_ID=1            vehicle every concurrency user fights over
Tokens are signed with the same SECRET_KEY as the API.
"""

import os
import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

from autofleet.core.security import create_access_token

USER_IDS = [int(x) for x in os.environ.get("LOAD_TEST_USER_IDS", "").split(",") if x.strip()]
CONCURRENCY_VEHICLE_ID = int(os.environ.get("LOAD_TEST_VEHICLE_ID", "0"))
VEHICLE_IDS = []


def auth_headers() -> dict:
    if not USER_IDS:
        return {}
    token = create_access_token(data={"sub": str(random.choice(USER_IDS))})
    return {"Authorization": f"Bearer {token}"}


def rental_window(max_offset: int = 60, max_length: int = 5) -> tuple[str, str]:
    start = date.today() + timedelta(days=random.randint(1, max_offset))
    end = start + timedelta(days=random.randint(1, max_length))
    return start.isoformat(), end.isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: {len(USER_IDS)} customers, concurrency vehicle {CONCURRENCY_VEHICLE_ID or 'unset'}")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many customers, one car, overlapping dates

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no two occupying bookings overlap:
      SELECT a.id, b.id FROM bookings a JOIN bookings b
        ON a.vehicle_id = b.vehicle_id AND a.id < b.id
       AND a.start_date <= b.end_date AND a.end_date >= b.start_date
     WHERE a.vehicle_id = X
       AND a.status IN ('pending','confirmed','active')
       AND b.status IN ('pending','confirmed','active');
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers()

    @tag("concurrency")
    @task
    def book_same_vehicle(self):
        """Everyone asks for the same vehicle within a narrow 10-day window."""
        if not CONCURRENCY_VEHICLE_ID or not self.headers:
            return

        start, end = rental_window(max_offset=10, max_length=3)
        with self.client.post("/api/v1/bookings/",
            json={
                "vehicle_id": CONCURRENCY_VEHICLE_ID,
                "pickup_location": "Load Test",
                "pickup_date": start,
                "return_date": end,
                "payment_method": "card",
            },
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: dates taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_vehicles_cached(self):
        """Hammer the cached endpoint."""
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/vehicles/?page={page}&page_size=20&status=available",
            name="/api/v1/vehicles/ [cached]")
        if resp.status_code == 200:
            for vehicle in resp.json().get("vehicles", []):
                if vehicle["id"] not in VEHICLE_IDS:
                    VEHICLE_IDS.append(vehicle["id"])

    @tag("throughput", "read")
    @task(3)
    def check_availability(self):
        """Date availability is never cached."""
        if VEHICLE_IDS:
            start, end = rental_window()
            self.client.get(
                f"/api/v1/vehicles/{random.choice(VEHICLE_IDS)}/availability",
                params={"start_date": start, "end_date": end},
                name="/api/v1/vehicles/{id}/availability")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers()

    def _expect(self, payload, allowed, headers=None):
        with self.client.post("/api/v1/bookings/",
            json=payload,
            headers=self.headers if headers is None else headers,
            catch_response=True
        ) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_vehicle_id(self):
        """Book non-existent vehicle."""
        self._expect(
            {"vehicle_id": 999999, "pickup_location": "x", "payment_method": "card"},
            [404],
        )

    @tag("edge")
    @task
    def return_before_pickup(self):
        start, end = rental_window()
        self._expect(
            {"vehicle_id": CONCURRENCY_VEHICLE_ID or 1, "pickup_location": "x",
             "pickup_date": end, "return_date": start, "payment_method": "card"},
            [400, 404],
        )

    @tag("edge")
    @task
    def mobile_without_telephone(self):
        start, end = rental_window()
        self._expect(
            {"vehicle_id": CONCURRENCY_VEHICLE_ID or 1, "pickup_location": "x",
             "pickup_date": start, "return_date": end, "payment_method": "mobile"},
            [400, 404, 409],
        )

    @tag("edge")
    @task
    def unknown_payment_method(self):
        self._expect(
            {"vehicle_id": 1, "pickup_location": "x", "payment_method": "barter"},
            [422],
        )

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        self._expect(
            {"vehicle_id": 1, "pickup_location": "x", "payment_method": "card"},
            [401],
            headers={},
        )
