from abc import ABC, abstractmethod
from typing import Optional
from sqlalchemy.orm import Session
from faker import Faker
import logging

logger = logging.getLogger(__name__)


class BaseSeeder(ABC):
    """
    Abstract base class for all data seeders.

    Attributes:
        priority (int): Execution order priority (lower runs first).
                        Authorization catalogue uses 0-100.
                        Demo tenants use 500+.
        demo (bool): Only runs when demo data is requested.
    """
    priority: int = 100
    demo: bool = False

    def __init__(self, session: Session, fake: Optional[Faker] = None):
        self.session = session
        self.fake = fake or Faker()

    @abstractmethod
    def run(self):
        """Execute the seeding logic."""

    def log(self, message: str):
        logger.info(f"[{self.__class__.__name__}] {message}")
