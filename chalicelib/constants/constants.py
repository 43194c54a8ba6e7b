import os

SERVICE_NAME = 'pizza-order-service'
SERVICE_VERSION = os.environ.get('SERVICE_VERSION', '0.1.0')

# Roles
ROLE_DINER = 'diner'
ROLE_FRANCHISEE = 'franchisee'
ROLE_ADMIN = 'admin'

# Order statuses
ORDER_SUBMITTED = 'submitted'
ORDER_CONFIRMED = 'confirmed'
ORDER_FAILED = 'failed'

# Default administrator created on first start
DEFAULT_ADMIN_NAME = os.environ.get('DEFAULT_ADMIN_NAME', '常用名字')
DEFAULT_ADMIN_EMAIL = os.environ.get('DEFAULT_ADMIN_EMAIL', 'a@jwt.com')
DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD', 'admin')

# Pizza factory
FACTORY_URL = os.environ.get('FACTORY_URL', 'https://pizza-factory.cs329.click')
FACTORY_API_KEY = os.environ.get('FACTORY_API_KEY', '')
FACTORY_TIMEOUT = float(os.environ.get('FACTORY_TIMEOUT', '10'))
FACTORY_MAX_ATTEMPTS = int(os.environ.get('FACTORY_MAX_ATTEMPTS', '4'))
FACTORY_BACKOFF_BASE = float(os.environ.get('FACTORY_BACKOFF_BASE', '0.2'))

DEFAULT_PAGE_LIMIT = 10

# Password hashing cost
BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', '12'))
