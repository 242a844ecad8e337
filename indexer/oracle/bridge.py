"""Records confirmed Bitcoin contributions on the CampaignManager contract."""

from dataclasses import dataclass
from typing import Callable, Optional

from web3 import Web3

from config import Config
from errors import ConfigurationError, VerificationError
from eth.abi_loader import CAMPAIGN_MANAGER
from eth.client import EthereumClient
from log import get_logger
from stats.formatting import sats_to_wei

logger = get_logger(__name__)

# (campaign_id, amount_sats, txid) -> True if the deposit is confirmed
ContributionVerifier = Callable[[str, int, Optional[str]], bool]


@dataclass(frozen=True)
class RecordedContribution:
    campaign_id: str
    amount_sats: int
    amount_wei: int
    tx_hash: str
    block_number: int
    verified: bool
    btc_txid: Optional[str] = None


class OracleBridge:
    """Writes ``recordExternalContribution(id, amount)`` with the oracle key."""

    def __init__(
        self,
        config: Config,
        client: EthereumClient,
        verifier: Optional[ContributionVerifier] = None,
    ):
        """Initialize bridge.

        Args:
            config: Configuration with the oracle private key
            client: Client for the network hosting the CampaignManager
            verifier: Optional deposit check run before anything is written
        """
        self.config = config
        self.client = client
        self.verifier = verifier

    def _account(self):
        if not self.config.oracle_private_key:
            raise ConfigurationError("Oracle private key not configured (ORACLE_PRIVATE_KEY)")
        return self.client.web3.eth.account.from_key(self.config.oracle_private_key)

    def record_external_contribution(
        self,
        campaign_id: str,
        amount_sats: int,
        txid: Optional[str] = None,
    ) -> RecordedContribution:
        """Record a Bitcoin contribution on-chain and wait for the receipt.

        Satoshis are scaled to the contract's 18-decimal units
        (``sats * 10**10``).

        Raises:
            ConfigurationError: If the oracle key or CampaignManager address is missing
            VerificationError: If the verifier rejects the contribution
            ValueError: If ``amount_sats`` is not positive
        """
        if amount_sats <= 0:
            raise ValueError(f"amount_sats must be > 0, got {amount_sats}")

        address = self.client.network.contract_address(CAMPAIGN_MANAGER)
        if not address:
            raise ConfigurationError(f"CampaignManager address not configured for {self.client.network.name}")
        account = self._account()

        verified = False
        if self.verifier is not None:
            logger.info(f"Verifying BTC tx {txid} for {amount_sats} sats...")
            if not self.verifier(campaign_id, amount_sats, txid):
                raise VerificationError(f"Contribution {txid} to {campaign_id} failed verification")
            verified = True
        else:
            logger.warning(f"No contribution verifier configured, recording {txid} unverified")

        amount_wei = sats_to_wei(amount_sats)
        logger.info(f"Recording contribution for {campaign_id}: {amount_wei} wei")

        w3 = self.client.web3
        contract = self.client.contract(CAMPAIGN_MANAGER, address)
        unsigned_tx = contract.functions.recordExternalContribution(
            Web3.to_bytes(hexstr=campaign_id), amount_wei
        ).build_transaction({
            "from": account.address,
            "nonce": w3.eth.get_transaction_count(account.address),
        })
        signed_tx = account.sign_transaction(unsigned_tx)
        tx_hash = w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        receipt = w3.eth.wait_for_transaction_receipt(tx_hash)

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Recorded contribution in tx {tx_hash_hex} (block: {receipt['blockNumber']})")

        return RecordedContribution(
            campaign_id=campaign_id.lower(),
            amount_sats=amount_sats,
            amount_wei=amount_wei,
            tx_hash=tx_hash_hex,
            block_number=receipt["blockNumber"],
            verified=verified,
            btc_txid=txid,
        )
