from typing import Dict, List

from mynute.models import ResourceRecord
from mynute.seeder.base import BaseSeeder
from mynute.seeder.registry import SeederRegistry


def reference_ladder(name: str, *natural_keys: str) -> List[Dict[str, str]]:
    """
    Standard lookup order for a resource. Path keys come first because they are
    what the route's controller reads: `path.id`, `path.<name>_id`, the natural
    keys, then `query.id` and `<name>_id` in query and body.
    """
    foreign = f"{name}_id"
    ladder = [
        {"storage_key": "id", "request_key": "id", "request_location": "path"},
        {"storage_key": "id", "request_key": foreign, "request_location": "path"},
    ]
    for key in natural_keys:
        ladder.append({"storage_key": key, "request_key": key, "request_location": "path"})
    ladder += [
        {"storage_key": "id", "request_key": "id", "request_location": "query"},
        {"storage_key": "id", "request_key": foreign, "request_location": "query"},
        {"storage_key": "id", "request_key": foreign, "request_location": "body"},
    ]
    return ladder


RESOURCES = (
    ("company", "companies", reference_ladder("company")),
    ("client", "clients", reference_ladder("client", "email")),
    ("branch", "branches", reference_ladder("branch")),
    ("employee", "employees", reference_ladder("employee", "email")),
    ("service", "services", reference_ladder("service")),
    ("appointment", "appointments", reference_ladder("appointment")),
)


@SeederRegistry.register
class ResourceSeeder(BaseSeeder):
    """Seeds the resource catalogue used for policy attribute hydration."""
    priority = 10

    def run(self):
        for name, table, references in RESOURCES:
            existing = self.session.query(ResourceRecord).filter_by(name=name).first()
            if existing:
                existing.storage_table = table
                existing.references = references
                self.log(f"Resource '{name}' updated.")
                continue
            self.session.add(
                ResourceRecord(name=name, storage_table=table, references=references)
            )
            self.log(f"Created resource '{name}'.")
