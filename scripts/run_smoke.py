"""Drive a running backend: place orders, pay them, and report latencies.

    python scripts/run_smoke.py --orders 20 --base-url http://localhost:5000
"""
import argparse
import statistics
import time

import requests


def _post(url: str, payload: dict) -> requests.Response:
    return requests.post(url, json=payload, timeout=5)


def order_test(base_url: str, count: int) -> None:
    latencies = []
    unpublished = 0
    for i in range(count):
        payload = {
            "user_id": f"u{i}",
            "items": [{"product_id": "1", "quantity": 1, "price": 199.99}],
            "email": f"u{i}@example.com",
        }
        started = time.time()
        resp = _post(f"{base_url}/api/orders", payload)
        latencies.append(int((time.time() - started) * 1000))
        if resp.status_code != 201:
            print("order failure", resp.status_code, resp.text)
            continue
        body = resp.json()
        if not body["event_published"]:
            unpublished += 1
        pay = _post(
            f"{base_url}/api/payments/process",
            {"order_id": body["order"]["id"], "amount": body["order"]["total"], "payment_method": "card"},
        )
        if pay.status_code != 200:
            print("payment failure", pay.status_code, pay.text)
    _print_stats("orders", latencies)
    print(f"orders without ORDER_CREATED event: {unpublished}/{count}")


def queue_report(base_url: str) -> None:
    for queue in ("order.created", "payment.processed", "email.notifications"):
        resp = requests.get(f"{base_url}/api/admin/queues/{queue}", timeout=5)
        if resp.status_code == 200:
            info = resp.json()["queue"]
            print(f"{queue:<22} messages={info['messageCount']:<6} consumers={info['consumerCount']}")
        else:
            print(f"{queue:<22} unavailable ({resp.status_code})")


def _print_stats(label: str, latencies: list[int]) -> None:
    if not latencies:
        return
    p50 = int(statistics.median(latencies))
    p95 = int(statistics.quantiles(latencies, n=20)[18]) if len(latencies) >= 20 else max(latencies)
    avg = int(statistics.mean(latencies))
    print(f"{label} avg={avg}ms p50={p50}ms p95={p95}ms")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default="http://localhost:5000")
    parser.add_argument("--orders", type=int, default=10)
    args = parser.parse_args()

    health = requests.get(f"{args.base_url}/health/dependencies", timeout=5).json()
    print("rabbitmq:", health["rabbitmq"]["status"], "| redis:", health["redis"]["status"])
    if args.orders:
        order_test(args.base_url, args.orders)
    queue_report(args.base_url)


if __name__ == "__main__":
    main()
