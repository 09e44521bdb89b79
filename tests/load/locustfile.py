"""
Load Testing Scripts

Locust load tests for the MindMate API.
Exercises the read endpoints the mobile client polls and, at a lower
rate, full recent analyses against the model endpoint.

Simulated users need real accounts: pass their ids in
MINDMATE_LOAD_USER_IDS (comma separated).

USAGE:
    MINDMATE_LOAD_USER_IDS=<id>,<id> locust -f tests/load/locustfile.py --host=http://localhost:8000
"""

import os
import random

from locust import between, events, task
from locust.contrib.fasthttp import FastHttpUser

API = "/api/v1/mental-health"
USER_IDS = [uid.strip() for uid in os.environ.get("MINDMATE_LOAD_USER_IDS", "").split(",") if uid.strip()]


class MindMateApiUser(FastHttpUser):
    """
    Simulated MindMate client.

    Mostly reads; analyses are rare because each one is a model call.
    """

    wait_time = between(1, 5)

    def on_start(self):
        """Pick an account for this simulated user."""
        if not USER_IDS:
            raise RuntimeError("MINDMATE_LOAD_USER_IDS is empty")
        self.user_id = random.choice(USER_IDS)
        self.headers = {"X-User-ID": self.user_id}
        self.open_request_id = None

    @task(10)
    def health_check(self):
        """Health check - most common request."""
        with self.client.get("/api/v1/health", catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"Health check failed: {response.status_code}")

    @task(3)
    def metrics_endpoint(self):
        """Prometheus metrics scrape."""
        self.client.get("/metrics")

    @task(6)
    def latest_assessment(self):
        with self.client.get(f"{API}/assessment", headers=self.headers, catch_response=True) as response:
            # 404 just means no analysis has run for this user yet
            if response.status_code in (200, 404):
                response.success()
            else:
                response.failure(f"Failed: {response.status_code}")

    @task(4)
    def support_statistics(self):
        self.client.get(f"{API}/support-statistics", headers=self.headers)

    @task(4)
    def buddy_requests(self):
        """Poll open buddy requests; remember one to answer later."""
        with self.client.get(
            f"{API}/support-requests/buddy",
            headers=self.headers,
            catch_response=True,
        ) as response:
            if response.status_code != 200:
                response.failure(f"Failed: {response.status_code}")
                return
            requests = response.json().get("requests", [])
            self.open_request_id = requests[0]["assessmentId"] if requests else None
            response.success()

    @task(2)
    def stats(self):
        self.client.get(f"{API}/stats", headers=self.headers, params={"days": 30})

    @task(1)
    def analyze_recent(self):
        """Full pipeline run including the model call."""
        with self.client.post(
            f"{API}/analyze-recent",
            headers=self.headers,
            catch_response=True,
        ) as response:
            if response.status_code == 200:
                response.success()
            elif response.status_code == 502:
                response.failure("Model endpoint unavailable")
            else:
                response.failure(f"Failed: {response.status_code}")

    @task(1)
    def provide_support(self):
        if not self.open_request_id:
            return
        with self.client.post(
            f"{API}/provide-support/{self.open_request_id}",
            headers=self.headers,
            catch_response=True,
            name=f"{API}/provide-support/[id]",
        ) as response:
            # Another simulated helper may have answered first
            if response.status_code in (200, 404):
                response.success()
            else:
                response.failure(f"Failed: {response.status_code}")
        self.open_request_id = None


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Log test start."""
    print(f"Load test starting with {len(USER_IDS)} accounts...")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Log test completion."""
    print("Load test complete.")
    print(f"Total requests: {environment.stats.total.num_requests}")
    print(f"Failures: {environment.stats.total.num_failures}")
    print(f"Avg response time: {environment.stats.total.avg_response_time:.2f}ms")
