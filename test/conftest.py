import os

# must be set before chalicelib is imported
os.environ.update({
    'AWS_ACCESS_KEY_ID': 'testing',
    'AWS_SECRET_ACCESS_KEY': 'testing',
    'AWS_SECURITY_TOKEN': 'testing',
    'AWS_SESSION_TOKEN': 'testing',
    'AWS_REGION': 'eu-central-1',
    'AWS_DEFAULT_REGION': 'eu-central-1',
    'GEN_TABLE_NAME': 'pizza-order-service-test',
    'BOOTSTRAP_DEFAULT_ADMIN': 'false',
    'BCRYPT_ROUNDS': '4',
    'FACTORY_URL': 'https://pizza-factory.test',
    'FACTORY_API_KEY': 'test-factory-key',
    'FACTORY_BACKOFF_BASE': '0',
    'LOG_LEVEL': 'INFO'
})
os.environ.pop('ENDPOINT_URL', None)

from test.utils.fixtures import gen_table, empty_chalice_client, chalice_client  # noqa: E402,F401
