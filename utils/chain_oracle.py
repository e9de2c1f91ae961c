# utils/chain_oracle.py
import json
import logging
import os
import re
from collections import namedtuple

from eth_abi.exceptions import DecodingError
from web3 import Web3

from utils.errors import OracleUnavailable, ValidationError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'

BASE_DIR = os.path.dirname(os.path.abspath(__file__))  # 当前文件目录
ABIS_DIR = os.path.join(BASE_DIR, '..', 'abis')       # abis 目录

ADDRESS_RE = re.compile(r'^(0x)?[0-9a-fA-F]{40}$')

ChainAccount = namedtuple('ChainAccount', ['account', 'claimed'])


def load_referral_abi():
    with open(os.path.join(ABIS_DIR, 'ReferralContract.json'), 'r') as f:
        full_json = json.load(f)
    return full_json['abi']


def find_function(abi, name):
    return next(
        entry for entry in abi
        if entry.get('type') == 'function' and entry.get('name') == name
    )


def normalize_address(address):
    """Return the 0x-prefixed checksum form of ``address``."""
    if not address or not ADDRESS_RE.match(address):
        raise ValidationError('Address must be a valid Ethereum address')
    if not address.lower().startswith('0x'):
        address = f"0x{address}"
    return Web3.to_checksum_address(address.lower())


class ChainOracle:
    """Read-only view of ``ReferralContract.accounts(signer)``.

    The call is issued as a raw ``eth_call`` so that an empty reply (signer
    unknown to the contract) can be told apart from a reply that does not
    decode as ``(address, bool)``.
    """

    def __init__(self, w3, contract_address, abi=None):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)

        accounts = find_function(abi or load_referral_abi(), 'accounts')
        self.input_types = [i['type'] for i in accounts['inputs']]
        self.output_types = [o['type'] for o in accounts['outputs']]
        self.selector = Web3.keccak(text=f"accounts({','.join(self.input_types)})")[:4]

    @classmethod
    def from_config(cls, config):
        contract_address = config.get('REFERRAL_CONTRACT_ADDRESS')
        if not contract_address:
            raise RuntimeError("Missing REFERRAL_CONTRACT_ADDRESS environment variable")

        provider = Web3.HTTPProvider(
            config.get('RPC_URL'),
            request_kwargs={'timeout': float(config.get('RPC_TIMEOUT', 10))},
        )
        return cls(Web3(provider), contract_address)

    def encode_call(self, signer_address):
        return Web3.to_hex(self.selector + self.w3.codec.encode(self.input_types, [signer_address]))

    def _ensure_contract_deployed(self):
        # 目标地址没有合约代码时 eth_call 同样返回空数据，不能当作"未领取"
        try:
            code = self.w3.eth.get_code(self.contract_address)
        except Exception as e:
            raise OracleUnavailable(f"eth_getCode({self.contract_address}) failed: {e}") from e
        if not code:
            raise OracleUnavailable(f"No contract deployed at {self.contract_address}")

    def fetch_account(self, signer):
        """Query the contract, raising ``OracleUnavailable`` on any failure."""
        signer_address = normalize_address(signer)
        try:
            data = self.w3.eth.call({
                'from': ZERO_ADDRESS,
                'to': self.contract_address,
                'data': self.encode_call(signer_address),
            })
        except Exception as e:
            raise OracleUnavailable(f"accounts({signer_address}) call failed: {e}") from e

        if not data:
            self._ensure_contract_deployed()
            # 合约没有返回数据：视为地址不存在、未领取
            return ChainAccount(ZERO_ADDRESS, False)

        try:
            account, claimed = self.w3.codec.decode(self.output_types, bytes(data))
        except DecodingError as e:
            raise OracleUnavailable(
                f"accounts({signer_address}) returned malformed data {Web3.to_hex(data)}: {e}"
            ) from e

        return ChainAccount(Web3.to_checksum_address(account), bool(claimed))

    def check_on_chain(self, signer):
        """Fail-open lookup: errors read as "not claimed" with the zero address."""
        try:
            return self.fetch_account(signer)
        except (OracleUnavailable, ValidationError) as e:
            logger.warning(f"[chain_oracle] treating {signer} as unclaimed: {e}")
            return ChainAccount(ZERO_ADDRESS, False)
