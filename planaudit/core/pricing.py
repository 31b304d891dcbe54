"""
Pricing Table Module
====================

Static, versioned lookup of hosting-plan unit costs.

The table maps ``(tier, size)`` to a monthly USD cost for one worker.
It ships as package data (``planaudit/data/pricing.json``) and can be
replaced with a newer file without touching the audit logic.

Classes
-------
PricingTable
    Cost lookup with tier and global fallbacks.

Example
-------
>>> from planaudit.core.pricing import PricingTable
>>> from planaudit.core.models import PlanTier
>>>
>>> table = PricingTable.default()
>>> table.estimate_monthly_cost(PlanTier.STANDARD, "S1", 1)
Decimal('73.00')
>>> table.estimate_monthly_cost(PlanTier.STANDARD, "S9", 2)  # tier default
Decimal('146.00')
>>> table.estimate_monthly_cost("Mystery", "X1", 1)  # global default
Decimal('50.00')

File Format
-----------
::

    {
      "version": "2024-06",
      "currency": "USD",
      "default_monthly_usd": "50.00",
      "tiers": {
        "Standard": {"default": "73.00", "sizes": {"S1": "73.00", ...}},
        ...
      }
    }

Amounts may be JSON strings or numbers; they are read as ``Decimal``.

Notes
-----
Estimation never fails: unknown sizes fall back to the tier default and
unknown tiers to the global default, so a new SKU cannot block an audit.
Only loading a malformed file raises :class:`PricingConfigError`.
"""

from __future__ import annotations

import json
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from planaudit.core.exceptions import PricingConfigError
from planaudit.core.models import CostEstimate, PlanTier, SkuDescriptor

# Module logger
logger = logging.getLogger(__name__)

GLOBAL_DEFAULT_MONTHLY_USD = Decimal("50.00")
CENTS = Decimal("0.01")


def _to_amount(value: Any, where: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise PricingConfigError(
            f"Invalid amount {value!r} for {where}",
            details={"field": where},
        )
    if not amount.is_finite() or amount < 0:
        raise PricingConfigError(
            f"Amount for {where} must be a non-negative number, got {value!r}",
            details={"field": where},
        )
    return amount


class PricingTable:
    """
    Lookup of ``(tier, size)`` to monthly unit cost.

    Parameters
    ----------
    tiers : mapping
        Tier name to ``{"default": amount, "sizes": {size: amount}}``.
        Tier names must be known :class:`PlanTier` values; ``default`` is
        optional.
    default_monthly_usd : Decimal or str, default="50.00"
        Cost used when the tier is unknown or has no default.
    version : str, default="unversioned"
        Version label of the price list.
    currency : str, default="USD"
        Currency of the amounts. Only USD is supported.

    Raises
    ------
    PricingConfigError
        If the tier mapping or an amount is invalid.

    Examples
    --------
    >>> table = PricingTable({"Basic": {"default": "54.75", "sizes": {"B1": "54.75"}}})
    >>> table.estimate_monthly_cost("Basic", "B1", 3)
    Decimal('164.25')
    """

    def __init__(
        self,
        tiers: Mapping[str, Mapping[str, Any]],
        default_monthly_usd: Union[Decimal, str] = GLOBAL_DEFAULT_MONTHLY_USD,
        version: str = "unversioned",
        currency: str = "USD",
    ) -> None:
        if str(currency).upper() != "USD":
            raise PricingConfigError(
                f"Unsupported currency {currency!r}; prices must be in USD",
                details={"currency": currency},
            )
        if not isinstance(tiers, Mapping):
            raise PricingConfigError("Pricing 'tiers' must be a mapping")

        self.version = str(version)
        self.currency = "USD"
        self.default_monthly_usd = _to_amount(default_monthly_usd, "default_monthly_usd")
        self._tier_defaults: Dict[PlanTier, Decimal] = {}
        self._sizes: Dict[PlanTier, Dict[str, Tuple[str, Decimal]]] = {}

        for tier_name, entry in tiers.items():
            tier = PlanTier.parse(tier_name)
            if tier is PlanTier.OTHER:
                raise PricingConfigError(
                    f"Unknown tier {tier_name!r} in pricing table",
                    details={"tier": tier_name},
                )
            if not isinstance(entry, Mapping):
                raise PricingConfigError(
                    f"Pricing entry for tier {tier_name!r} must be a mapping",
                    details={"tier": tier_name},
                )

            if entry.get("default") is not None:
                self._tier_defaults[tier] = _to_amount(
                    entry["default"], f"{tier_name}.default"
                )

            sizes = entry.get("sizes") or {}
            if not isinstance(sizes, Mapping):
                raise PricingConfigError(
                    f"Sizes for tier {tier_name!r} must be a mapping",
                    details={"tier": tier_name},
                )
            # Size codes are matched case-insensitively ("p1v3" == "P1v3")
            self._sizes[tier] = {
                str(size).lower(): (str(size), _to_amount(amount, f"{tier_name}.{size}"))
                for size, amount in sizes.items()
            }

        logger.debug(
            f"Loaded pricing table version {self.version} "
            f"({sum(len(s) for s in self._sizes.values())} sizes)"
        )

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: str = "<dict>") -> PricingTable:
        """
        Build a table from a parsed pricing document.

        Raises
        ------
        PricingConfigError
            If the document is not a mapping or has no ``tiers`` section.
        """
        if not isinstance(data, Mapping) or "tiers" not in data:
            raise PricingConfigError(
                "Pricing table has no 'tiers' section",
                details={"source": source},
            )
        return cls(
            tiers=data["tiers"],
            default_monthly_usd=data.get(
                "default_monthly_usd", GLOBAL_DEFAULT_MONTHLY_USD
            ),
            version=data.get("version", "unversioned"),
            currency=data.get("currency", "USD"),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> PricingTable:
        """
        Load a table from a JSON file.

        Parameters
        ----------
        path : str or Path
            Path to the pricing document.

        Raises
        ------
        PricingConfigError
            If the file cannot be read or parsed.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PricingConfigError(
                f"Failed to load pricing table: {e}",
                details={"path": str(path)},
            )
        logger.info(f"Using pricing table from {path}")
        return cls.from_dict(data, source=str(path))

    @classmethod
    def default(cls) -> PricingTable:
        """Load the price list bundled with the package."""
        text = (
            resources.files("planaudit")
            .joinpath("data")
            .joinpath("pricing.json")
            .read_text(encoding="utf-8")
        )
        return cls.from_dict(json.loads(text), source="planaudit/data/pricing.json")

    # =========================================================================
    # Lookup
    # =========================================================================

    def base_unit_cost(self, tier: Union[PlanTier, str], size: Optional[str]) -> Decimal:
        """
        Monthly cost of one worker of ``(tier, size)``.

        Lookup order: exact size within the tier, then the tier's default,
        then the global default. An unrecognized tier always gets the
        global default.
        """
        if not isinstance(tier, PlanTier):
            tier = PlanTier.parse(tier)
        # Unrecognized tiers never match a listed size
        if tier is PlanTier.OTHER:
            return self.default_monthly_usd

        sizes = self._sizes.get(tier, {})
        match = sizes.get(str(size or "").strip().lower())
        if match is not None:
            return match[1]
        if tier in self._tier_defaults:
            return self._tier_defaults[tier]
        return self.default_monthly_usd

    def estimate_monthly_cost(
        self,
        tier: Union[PlanTier, str],
        size: Optional[str],
        capacity: Any = 1,
    ) -> Decimal:
        """
        Estimate the monthly cost of a plan.

        Parameters
        ----------
        tier : PlanTier or str
            Plan tier; unknown strings are priced with the global default.
        size : str
            Size code such as ``S1`` or ``P2v3``.
        capacity : int, default=1
            Worker count; values below one (or unusable) count as one.

        Returns
        -------
        Decimal
            Non-negative cost rounded half away from zero to cents.
        """
        try:
            workers = max(int(capacity), 1)
        except (TypeError, ValueError):
            workers = 1
        total = self.base_unit_cost(tier, size) * workers
        return total.quantize(CENTS, rounding=ROUND_HALF_UP)

    def estimate(self, sku: SkuDescriptor) -> CostEstimate:
        """Estimate the cost of a plan SKU."""
        return CostEstimate(
            monthly_usd=self.estimate_monthly_cost(sku.tier, sku.size, sku.capacity)
        )

    def rows(self) -> List[Tuple[str, str, Decimal]]:
        """
        List the table as ``(tier, size, monthly_usd)`` rows.

        Tier defaults are listed with size ``*``.
        """
        rows: List[Tuple[str, str, Decimal]] = []
        for tier in PlanTier:
            if tier in self._tier_defaults:
                rows.append((tier.value, "*", self._tier_defaults[tier]))
            for size, amount in sorted(self._sizes.get(tier, {}).values()):
                rows.append((tier.value, size, amount))
        return rows

    def __repr__(self) -> str:
        return f"PricingTable(version={self.version!r})"
