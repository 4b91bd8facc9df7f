import logging
from typing import List, Optional, Type
from sqlalchemy.orm import Session
from faker import Faker

from .base import BaseSeeder

logger = logging.getLogger(__name__)


class SeederRegistry:
    """Registry to manage and execute registered seeders."""

    _seeders: List[Type[BaseSeeder]] = []

    @classmethod
    def register(cls, seeder_cls: Type[BaseSeeder]):
        """Decorator to register a seeder class."""
        if seeder_cls not in cls._seeders:
            cls._seeders.append(seeder_cls)
        return seeder_cls

    @classmethod
    def seeders(cls, *, include_demo: bool = False) -> List[Type[BaseSeeder]]:
        selected = [s for s in cls._seeders if include_demo or not s.demo]
        return sorted(selected, key=lambda x: x.priority)

    @classmethod
    def run_all(cls, session: Session, *, include_demo: bool = False, fake: Optional[Faker] = None):
        """Run registered seeders in priority order; each one commits on success."""
        fake = fake or Faker()
        ordered = cls.seeders(include_demo=include_demo)

        total = len(ordered)
        logger.info(f"Starting seeding process. {total} seeders selected.")

        for index, seeder_cls in enumerate(ordered, 1):
            seeder = seeder_cls(session, fake)
            try:
                seeder.log(f"Running ({index}/{total})...")
                seeder.run()
                session.commit()
                seeder.log("Completed.")
            except Exception as e:
                session.rollback()
                logger.error(f"Seeder {seeder_cls.__name__} failed: {e}")
                raise
