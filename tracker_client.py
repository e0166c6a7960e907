"""
Missing Products Tracker - API Client

Python counterpart of the dashboard's fetch wrapper. Every call is a
POST to /api/index?action=<name> with a JSON body.

Usage:
    client = TrackerApiClient('https://my-app.vercel.app/api/index')
    client.add_product('Oat milk', 'Acme', priority='high')

    for product in client.get_missing_products():
        print(product['product_name'])
"""

import os

import httpx


TRACKER_API_URL = os.environ.get('TRACKER_API_URL', 'http://localhost:3000/api/index')


class TrackerApiError(Exception):
    """The tracker API answered with an error status"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class TrackerApiClient:
    """Calls the tracker router by action name"""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport = None
    ):
        self.base_url = base_url or TRACKER_API_URL
        self.timeout = timeout
        self._transport = transport

    def request(self, action: str, data: dict = None):
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(
                self.base_url,
                params={'action': action},
                json=data or {}
            )

        try:
            result = response.json()
        except ValueError:
            result = None

        if response.is_error:
            message = None
            if isinstance(result, dict):
                message = result.get('error')
            raise TrackerApiError(message or 'Unknown API error', response.status_code)

        return result

    def get_missing_products(self) -> list[dict]:
        return self.request('getMissing')

    def add_product(self, product_name: str, supplier_name: str, priority: str = None) -> list[dict]:
        payload = {'productName': product_name, 'supplierName': supplier_name}
        if priority:
            payload['priority'] = priority
        return self.request('add', payload)

    def mark_as_received(self, product_id) -> dict:
        return self.request('markReceived', {'id': product_id})

    def delete_product(self, product_id) -> dict:
        return self.request('delete', {'id': product_id})

    def get_history(self) -> list[dict]:
        return self.request('getHistory')

    def get_metrics(self) -> dict:
        return self.request('getMetrics')

    def chat_with_groq(self, message: str, history: list[dict] = None) -> str:
        """Ask the inventory assistant a question and return its reply"""
        result = self.request('chatWithGroq', {
            'message': message,
            'history': history or []
        })
        return result['reply']


# ============================================================
# CLI TESTING
# ============================================================

if __name__ == "__main__":
    print("=" * 60)
    print("TRACKER API CLIENT TEST")
    print("=" * 60)

    client = TrackerApiClient()
    print(f"\nEndpoint: {client.base_url}")

    try:
        metrics = client.get_metrics()
        print(f"  ✅ Missing: {metrics['missingCount']}, "
              f"received: {metrics['receivedCount']}, "
              f"avg days: {metrics['avgDays']}")

        print("\n  By supplier:")
        for supplier, count in sorted(metrics['supplierCounts'].items()):
            print(f"    {supplier}: {count}")
    except Exception as e:
        print(f"  ❌ Error: {e}")
