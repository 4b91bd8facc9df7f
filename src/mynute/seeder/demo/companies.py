import uuid

from mynute.database import create_tenant_schema, get_db_session, schema_name_for_company
from mynute.models import Branch, Client, Company, Employee, Service
from mynute.seeder.base import BaseSeeder
from mynute.seeder.core import blocks
from mynute.seeder.registry import SeederRegistry


@SeederRegistry.register
class DemoCompanySeeder(BaseSeeder):
    """Creates demo companies with their schema, branches, staff and services."""
    priority = 500
    demo = True

    companies = 2
    branches_per_company = 2

    def run(self):
        for _ in range(self.companies):
            company_id = str(uuid.uuid4())
            company = Company(
                id=company_id,
                legal_name=self.fake.company(),
                trade_name=self.fake.company_suffix(),
                tax_id=self.fake.unique.numerify("##############"),
                schema_name=schema_name_for_company(company_id),
            )
            self.session.add(company)
            # Schema DDL runs on its own connection; the company row must be committed first.
            self.session.commit()

            engine = self.session.get_bind()
            create_tenant_schema(engine, company.schema_name)
            with get_db_session(engine, schema=company.schema_name) as tenant:
                self._populate(tenant, company)
            self.log(f"Created company '{company.legal_name}' ({company.schema_name}).")

        for _ in range(3):
            self.session.add(
                Client(
                    name=self.fake.first_name(),
                    surname=self.fake.last_name(),
                    email=self.fake.unique.email(),
                    phone=self.fake.phone_number()[:32],
                )
            )

    def _populate(self, tenant, company: Company) -> None:
        tenant.add(
            Employee(
                company_id=company.id,
                name=self.fake.first_name(),
                surname=self.fake.last_name(),
                email=self.fake.unique.company_email(),
                role=blocks.OWNER,
            )
        )
        for _ in range(self.branches_per_company):
            branch = Branch(
                company_id=company.id,
                name=f"{self.fake.city()} branch",
                street=self.fake.street_address(),
                city=self.fake.city(),
                country=self.fake.country(),
            )
            tenant.add(branch)
            tenant.add(
                Employee(
                    company_id=company.id,
                    name=self.fake.first_name(),
                    surname=self.fake.last_name(),
                    email=self.fake.unique.company_email(),
                    role=blocks.BRANCH_MANAGER,
                )
            )
        tenant.add(
            Service(
                company_id=company.id,
                name=self.fake.bs().title()[:120],
                duration_minutes=self.fake.random_element((30, 45, 60)),
            )
        )
