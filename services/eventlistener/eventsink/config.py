"""Flask configuration management for the eventsink EventListener service."""

from __future__ import annotations

import os


class Config:
    """Base configuration class loading from environment variables."""

    # Flask settings
    DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"
    TESTING = os.getenv("FLASK_TESTING", "False").lower() == "true"
    ENV = os.getenv("FLASK_ENV", "production")

    # Owning EventListener
    EL_NAME = os.getenv("EL_NAME", "default-listener")
    EL_NAMESPACE = os.getenv("EL_NAMESPACE", "default")

    # Dispatch
    PAYLOAD_VALIDATION = os.getenv("PAYLOAD_VALIDATION", "True").lower() == "true"
    DISPATCH_TIMEOUT = float(os.getenv("DISPATCH_TIMEOUT", "30"))
    MAX_TRIGGER_WORKERS = int(os.getenv("MAX_TRIGGER_WORKERS", "32"))
    INTERCEPTOR_TIMEOUT = float(os.getenv("INTERCEPTOR_TIMEOUT", "5"))

    # Secret cache
    SECRET_RESYNC_INTERVAL = float(os.getenv("SECRET_RESYNC_INTERVAL", "30"))

    # Configuration catalog
    CATALOG_PATH = os.getenv("CATALOG_PATH", "/etc/eventsink/catalog.yaml")

    # Redis configuration
    MESSAGING_ENABLED = os.getenv("MESSAGING_ENABLED", "True").lower() == "true"
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_STREAM_MAX_LEN = int(os.getenv("REDIS_STREAM_MAX_LEN", "10000"))
    RESOURCES_STREAM = os.getenv("RESOURCES_STREAM", "eventsink:resources")
    RESULTS_STREAM = os.getenv("RESULTS_STREAM", "eventsink:results")

    # Logging configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False
    ENV = "development"


class TestingConfig(Config):
    """Testing environment configuration."""

    DEBUG = True
    TESTING = True
    ENV = "testing"
    EL_NAME = "test-listener"
    EL_NAMESPACE = "default"
    CATALOG_PATH = ""
    MESSAGING_ENABLED = False
    DISPATCH_TIMEOUT = 5.0


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False
    ENV = "production"
