from django.core.management.base import BaseCommand
import uuid, random, requests
from django.conf import settings

class Command(BaseCommand):
    help = "Generate a realistic batch of 5-10 requisitions and post it to the JSON batch endpoint"

    def add_arguments(self, parser):
        parser.add_argument('--count', type=int, default=None, help="Number of requisitions (default: random 5-10)")
        parser.add_argument('--submit', action='store_true', help="Ask for auto-submission after creation")

    def handle(self, *args, **options):
        base_url = getattr(settings, 'SIMULATE_BASE_URL', 'http://web:8000')
        endpoint = f"{base_url}/api/batches/json/"
        run_id = uuid.uuid4().hex[:8]

        business_units = ["BU Sao Paulo", "BU Rio", "BU Curitiba"]
        requesters = ["ana.souza@example.com", "joao.lima@example.com", "maria.costa@example.com"]
        items = [
            ("ITM-1001", "Notebook 14in"),
            ("ITM-2040", "Office chair"),
            ("ITM-3302", "Safety helmet"),
            (None, "Consulting services"),
            ("ITM-4410", "Cement bag 50kg"),
        ]

        requisitions = []
        n = options['count'] or random.randint(5, 10)
        for i in range(n):
            item_number, description = random.choice(items)
            requisitions.append({
                "business_unit": random.choice(business_units),
                "requester": random.choice(requesters),
                "deliver_to_location": "MAIN-WAREHOUSE",
                "external_reference": f"sim-{run_id}-{i}",
                "submit": options['submit'],
                "lines": [{
                    "item_number": item_number,
                    "description": description,
                    "supplier_number": f"SUP-{random.randint(100, 999)}",
                    "quantity": random.randint(1, 20),
                    "unit_price": round(random.uniform(5, 1500), 2),
                    "cost_center": f"CC-{random.randint(10, 99)}",
                    "project_number": None,
                }],
            })

        payload = {
            "file_name": f"simulated-{run_id}.json",
            "requisitions": requisitions,
            "metadata": {"source": "simulate_batch"},
        }

        self.stdout.write(f"Posting batch {payload['file_name']} with {n} requisitions")
        try:
            resp = requests.post(endpoint, json=payload, timeout=10)
        except requests.RequestException as e:
            self.stderr.write(f"Failed to post: {e}")
            return
        self.stdout.write(f"Status: {resp.status_code} {resp.text}")
