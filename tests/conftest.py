import pytest
from web3 import Web3
from web3.providers.base import BaseProvider

from app import create_app
from extensions import db
from utils.chain_oracle import ChainAccount, ChainOracle, ZERO_ADDRESS
from utils.errors import OracleUnavailable
from utils.invite_manager import InviteLifecycleManager
from utils.invite_store import InviteStore

API_KEY = 'test-api-key'
REGISTERED_ACCOUNT = '0x00000000000000000000000000000000000000aa'
REFERRAL_CONTRACT = '0x5555555555555555555555555555555555555555'


class StubProvider(BaseProvider):
    """JSON-RPC node double answering eth_call and eth_getCode from fixed values."""

    def __init__(self, call_result='0x', code='0x6080604052', call_error=None):
        super().__init__()
        self.call_result = call_result
        self.code = code
        self.call_error = call_error
        self.requests = []

    def make_request(self, method, params):
        self.requests.append((method, params))
        if method == 'eth_chainId':
            result = '0x64'
        elif method == 'eth_getCode':
            result = self.code
        elif method == 'eth_call':
            if isinstance(self.call_error, Exception):
                raise self.call_error
            if self.call_error is not None:
                return {'jsonrpc': '2.0', 'id': 1, 'error': self.call_error}
            result = self.call_result
        else:
            raise NotImplementedError(method)
        return {'jsonrpc': '2.0', 'id': 1, 'result': result}

    def is_connected(self, show_traceback=False):
        return True


class FakeOracle:
    """In-memory stand-in for ChainOracle keyed by lower-cased address."""

    def __init__(self):
        self.accounts = {}
        self.calls = []
        self.fail = False

    def set(self, address, claimed, account=REGISTERED_ACCOUNT):
        self.accounts[address.lower()] = ChainAccount(account, claimed)

    def fetch_account(self, signer):
        self.calls.append(signer)
        if self.fail:
            raise OracleUnavailable('rpc down')
        return self.accounts.get(signer.lower(), ChainAccount(ZERO_ADDRESS, False))

    def check_on_chain(self, signer):
        return self.fetch_account(signer)


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def app(oracle):
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite://',
            'API_KEY': API_KEY,
            'AUTO_CREATE_TABLES': True,
            'LOG_LEVEL': 'DEBUG',
        },
        oracle=oracle,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return InviteStore(db.session)


@pytest.fixture
def manager(store, oracle):
    return InviteLifecycleManager(store, oracle)


@pytest.fixture
def stub_provider():
    return StubProvider()


@pytest.fixture
def chain_oracle(stub_provider):
    return ChainOracle(Web3(stub_provider), REFERRAL_CONTRACT)
