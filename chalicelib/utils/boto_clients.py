import os

from botocore.config import Config

main_boto_region = os.environ.get('AWS_REGION', 'eu-central-1')
aws_config_ddb = Config(retries={'max_attempts': 3}, region_name=main_boto_region)
