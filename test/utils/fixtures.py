import os

import boto3
import pytest
from chalice.test import Client
from moto import mock_aws

from app import app
from chalicelib.auth import ensure_default_admin
from chalicelib.utils import db


def create_gen_table():
    boto3.client('dynamodb', region_name=os.environ['AWS_REGION']).create_table(
        TableName=os.environ['GEN_TABLE_NAME'],
        KeySchema=[
            {'AttributeName': 'partkey', 'KeyType': 'HASH'},
            {'AttributeName': 'sortkey', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'partkey', 'AttributeType': 'S'},
            {'AttributeName': 'sortkey', 'AttributeType': 'S'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def gen_table():
    with mock_aws():
        db.reset_gen_table()
        create_gen_table()
        yield db.get_gen_table()
        db.reset_gen_table()


@pytest.fixture
def empty_chalice_client(gen_table) -> Client:
    """App client over an empty table, the default admin does not exist yet"""
    with Client(app) as client:
        yield client


@pytest.fixture
def chalice_client(gen_table) -> Client:
    ensure_default_admin()
    with Client(app) as client:
        yield client
