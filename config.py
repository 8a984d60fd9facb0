# config.py

import os

class Config:
    """Base configuration with default settings."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'default_secret_key')
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./classvote.db')
    SESSION_MAX_AGE = int(os.getenv('SESSION_MAX_AGE', 1800))
    ADMIN_USERNAME = os.getenv('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'change-me')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    TESTING = False
    DEBUG = False

class ProductionConfig(Config):
    """Production configuration settings."""
    SECRET_KEY = os.getenv('SECRET_KEY')
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./classvote.db')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    DEBUG = False

class TestingConfig(Config):
    """Testing configuration settings."""
    SECRET_KEY = os.getenv('TEST_SECRET_KEY', 'test_secret_key')
    DATABASE_URL = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    ADMIN_USERNAME = os.getenv('TEST_ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD = os.getenv('TEST_ADMIN_PASSWORD', 'test_admin_password')
    SESSION_MAX_AGE = 600
    TESTING = True
    DEBUG = True
