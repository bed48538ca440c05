"""Revenue share configuration service."""

from decimal import Decimal
from typing import Optional

from settleit.config import RevenueShareSeed
from settleit.database.base import Database
from settleit.domain.entities import RevenueShareConfig, UserTypeRate
from settleit.domain.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    revenue_config_not_found,
)
from settleit.logging_config import get_logger

logger = get_logger("revenue_config")


def _validate_terms(
    percentage: Decimal,
    fixed: int,
    minimum: int,
    user_type_rates: tuple[UserTypeRate, ...],
) -> None:
    if not Decimal("0") <= percentage <= Decimal("100"):
        raise ValidationError(f"Commission percentage must be between 0 and 100, got {percentage}")
    if fixed < 0 or minimum < 0:
        raise ValidationError("Fixed commission and minimum commission must not be negative")

    seen: set[str] = set()
    for rate in user_type_rates:
        if rate.user_type in seen:
            raise ValidationError(f"Duplicate user type override '{rate.user_type}'")
        seen.add(rate.user_type)
        if not Decimal("0") <= rate.percentage <= Decimal("100"):
            raise ValidationError(
                f"Commission percentage for user type '{rate.user_type}' must be between 0 and 100"
            )
        if rate.fixed < 0 or rate.minimum_commission < 0:
            raise ValidationError(f"Negative commission values for user type '{rate.user_type}'")


class RevenueShareService:
    """Service for managing versioned revenue share configurations.

    Configurations are never edited in place: a revision is stored as a new
    version and transactions keep referring to the version they were priced
    with.
    """

    def __init__(self, db: Database, seed: Optional[RevenueShareSeed] = None):
        """Initialize revenue share service.

        Args:
            db: Database instance
            seed: Configuration installed as the default when none exists
        """
        self.db = db
        self.seed = seed

    def ensure_seeded(self) -> Optional[int]:
        """Install the seed configuration if no configuration exists.

        Returns:
            ID of the installed configuration, or None if nothing was installed
        """
        if self.seed is None or self.db.list_revenue_configs(include_inactive=True):
            return None
        config_id = self.create_config(
            name=self.seed.name,
            platform_commission_percentage=self.seed.platform_commission_percentage,
            platform_commission_fixed=self.seed.platform_commission_fixed,
            minimum_commission=self.seed.minimum_commission,
            user_type_rates=self.seed.user_type_rates,
            description=self.seed.description,
            is_default=True,
        )
        logger.info("revenue_config_seeded", extra={"config_id": config_id, "config_name": self.seed.name})
        return config_id

    def create_config(
        self,
        name: str,
        platform_commission_percentage: Decimal,
        platform_commission_fixed: int = 0,
        minimum_commission: int = 0,
        user_type_rates: tuple[UserTypeRate, ...] = (),
        description: Optional[str] = None,
        is_default: bool = False,
    ) -> int:
        """Create a configuration.

        When a configuration with the same name exists, the new one is stored
        as its next version.

        Args:
            name: Configuration name
            platform_commission_percentage: Base commission rate in percent
            platform_commission_fixed: Fixed commission in minor units
            minimum_commission: Lower bound on commission in minor units
            user_type_rates: Per user type overrides
            description: Optional description
            is_default: Make this the default configuration

        Returns:
            Configuration ID

        Raises:
            ValidationError: If any rate or amount is out of range
        """
        name = name.strip()
        if not name:
            raise ValidationError("Configuration name must not be empty")
        percentage = Decimal(str(platform_commission_percentage))
        user_type_rates = tuple(user_type_rates)
        _validate_terms(percentage, platform_commission_fixed, minimum_commission, user_type_rates)

        latest = self.db.get_latest_revenue_config(name)
        version = 1 if latest is None else latest.version + 1

        config_id = self.db.create_revenue_config(
            name=name,
            version=version,
            platform_commission_percentage=percentage,
            platform_commission_fixed=platform_commission_fixed,
            minimum_commission=minimum_commission,
            user_type_rates=user_type_rates,
            description=description,
            is_default=is_default,
        )
        logger.info(
            "revenue_config_created",
            extra={"config_id": config_id, "config_name": name, "version": version, "is_default": is_default},
        )
        return config_id

    def revise_config(
        self,
        config_id: int,
        platform_commission_percentage: Optional[Decimal] = None,
        platform_commission_fixed: Optional[int] = None,
        minimum_commission: Optional[int] = None,
        user_type_rates: Optional[tuple[UserTypeRate, ...]] = None,
        description: Optional[str] = None,
        make_default: bool = False,
    ) -> int:
        """Store a new version of a configuration with some terms changed.

        Returns:
            ID of the new version
        """
        current = self.get_config(config_id)
        return self.create_config(
            name=current.name,
            platform_commission_percentage=(
                current.platform_commission_percentage
                if platform_commission_percentage is None
                else platform_commission_percentage
            ),
            platform_commission_fixed=(
                current.platform_commission_fixed if platform_commission_fixed is None else platform_commission_fixed
            ),
            minimum_commission=current.minimum_commission if minimum_commission is None else minimum_commission,
            user_type_rates=current.user_type_rates if user_type_rates is None else user_type_rates,
            description=current.description if description is None else description,
            is_default=make_default,
        )

    def get_config(self, config_id: int) -> RevenueShareConfig:
        """Get configuration by ID.

        Raises:
            NotFoundError: If the configuration does not exist
        """
        config = self.db.get_revenue_config(config_id)
        if config is None:
            raise NotFoundError(revenue_config_not_found(config_id))
        return config

    def list_configs(self, include_inactive: bool = False) -> list[RevenueShareConfig]:
        return self.db.list_revenue_configs(include_inactive=include_inactive)

    def set_default(self, config_id: int) -> None:
        """Make a configuration the single default.

        Raises:
            NotFoundError: If the configuration does not exist
            ConflictError: If the configuration is inactive
        """
        config = self.get_config(config_id)
        if not config.is_active:
            raise ConflictError(f"Cannot make inactive configuration {config_id} the default")
        self.db.set_default_revenue_config(config_id)
        logger.info("revenue_config_default_set", extra={"config_id": config_id})

    def deactivate(self, config_id: int) -> None:
        """Deactivate a configuration.

        Raises:
            NotFoundError: If the configuration does not exist
            ConflictError: If the configuration is the current default
        """
        config = self.get_config(config_id)
        if config.is_default:
            raise ConflictError(
                f"Configuration {config_id} is the default; set another default before deactivating it"
            )
        self.db.deactivate_revenue_config(config_id)
        logger.info("revenue_config_deactivated", extra={"config_id": config_id})

    def resolve(self, config_id: Optional[int] = None) -> RevenueShareConfig:
        """Configuration to price a transaction with.

        Raises:
            NotFoundError: If an explicit configuration does not exist
            ConflictError: If an explicit configuration is inactive
            ConfigurationError: If no default configuration is available
        """
        if config_id is not None:
            config = self.get_config(config_id)
            if not config.is_active:
                raise ConflictError(f"Revenue share configuration {config_id} is inactive")
            return config

        config = self.db.get_default_revenue_config()
        if config is None and self.ensure_seeded() is not None:
            config = self.db.get_default_revenue_config()
        if config is None:
            raise ConfigurationError("No default revenue share configuration is available")
        return config
