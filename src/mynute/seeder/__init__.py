from .base import BaseSeeder
from .registry import SeederRegistry

# Import sub-modules to ensure they register themselves when 'seeder' is imported.
# Execution order comes from priority, not from import order.

# Authorization catalogue (priority 0-100)
from .core import resources
from .core import endpoints
from .core import policies

# Demo tenants (priority 500+)
from .demo import companies
