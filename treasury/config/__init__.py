from .config import BaseConfig, DEFAULT_TRIAL_DAYS, OrganizationSettings, TreasuryConfig
