"""
Config classes backed by the environment and an optional .env file.
"""
import os
from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging
from dotenv import load_dotenv

from treasury.addresses import is_valid_address, normalize_address
from treasury.models.enums import FeeMode

logger = logging.getLogger(__name__)

DEFAULT_TRIAL_DAYS = 30


class BaseConfig():
    """
    Loads a .env file and exposes the environment variables.
    """
    def __init__(self):
        load_dotenv()
        # Get all environment variables and store them in a dictionary
        self.env_vars = {key: os.getenv(key) for key in os.environ}

    def get_env_var(self, var_name: str):
        """
        Retrieve the value of the specified environment variable
        Args:
            var_name (str) : Name of the env var to fetch
        """
        if var_name in self.env_vars.keys():
            return self.env_vars[var_name]
        logger.warning("Variable %s not found.", var_name)
        return None

    @abstractmethod
    def validate_env_vars(self):
        """
        Abstract method for validation of the env vars.
        """


@dataclass(frozen=True)
class OrganizationSettings:
    """Defaults applied to every organization created with these settings."""

    trial_days: int = DEFAULT_TRIAL_DAYS
    default_fee_token: Optional[str] = None
    default_fee_mode: Optional[FeeMode] = None
    seed_beneficiary_name: Optional[str] = None
    seed_beneficiary_address: Optional[str] = None

    @property
    def seeds_beneficiary(self) -> bool:
        return bool(self.seed_beneficiary_name and self.seed_beneficiary_address)


class TreasuryConfig(BaseConfig):
    """
    Environment-backed configuration:

        TREASURY_TRIAL_DAYS                 length of the trial granted to a new organization (30)
        TREASURY_DEFAULT_FEE_TOKEN          fee token stored on new organizations
        TREASURY_DEFAULT_FEE_MODE           stablecoin_preferred | stablecoin_only
        TREASURY_SEED_BENEFICIARY_NAME      beneficiary created with every organization,
        TREASURY_SEED_BENEFICIARY_ADDRESS   when both are set
        MONGO_URI, MONGO_DATABASE           connection of the MongoDB adapter
    """

    def validate_env_vars(self) -> bool:
        valid = True
        trial_days = self.env_vars.get('TREASURY_TRIAL_DAYS')
        if trial_days is not None:
            try:
                if int(trial_days) <= 0:
                    raise ValueError(trial_days)
            except ValueError:
                logger.error("TREASURY_TRIAL_DAYS must be a positive integer, got %s", trial_days)
                valid = False
        fee_mode = self.env_vars.get('TREASURY_DEFAULT_FEE_MODE')
        if fee_mode is not None and fee_mode not in {mode.value for mode in FeeMode}:
            logger.error("TREASURY_DEFAULT_FEE_MODE %s is not a known fee mode", fee_mode)
            valid = False
        seed_address = self.env_vars.get('TREASURY_SEED_BENEFICIARY_ADDRESS')
        if seed_address is not None and not is_valid_address(seed_address):
            logger.error("TREASURY_SEED_BENEFICIARY_ADDRESS %s is not a valid address", seed_address)
            valid = False
        return valid

    @property
    def trial_days(self) -> int:
        value = self.env_vars.get('TREASURY_TRIAL_DAYS')
        return int(value) if value else DEFAULT_TRIAL_DAYS

    @property
    def mongo_uri(self) -> Optional[str]:
        return self.get_env_var('MONGO_URI')

    @property
    def mongo_database(self) -> Optional[str]:
        return self.get_env_var('MONGO_DATABASE')

    def organization_settings(self) -> OrganizationSettings:
        if not self.validate_env_vars():
            raise ValueError("Invalid treasury configuration, see the log for details")
        fee_mode = self.env_vars.get('TREASURY_DEFAULT_FEE_MODE')
        seed_address = self.env_vars.get('TREASURY_SEED_BENEFICIARY_ADDRESS')
        return OrganizationSettings(
            trial_days=self.trial_days,
            default_fee_token=self.env_vars.get('TREASURY_DEFAULT_FEE_TOKEN') or None,
            default_fee_mode=FeeMode(fee_mode) if fee_mode else None,
            seed_beneficiary_name=self.env_vars.get('TREASURY_SEED_BENEFICIARY_NAME') or None,
            seed_beneficiary_address=normalize_address(seed_address) if seed_address else None,
        )
