"""Live reads of campaign state from the CampaignManager contract."""

from dataclasses import dataclass
from typing import Dict, List, Optional

from web3 import Web3

from errors import ConfigurationError
from eth.abi_loader import CAMPAIGN_MANAGER
from eth.client import EthereumClient
from log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OnChainCampaign:
    """Subset of the ``campaigns(bytes32)`` view the stats layer needs."""

    network: str
    creator: str
    goal: int
    pledged: int
    currency: str
    active: bool


class CampaignContractReader:
    """Reads ``campaigns(id)`` from each network's CampaignManager."""

    def __init__(self, clients: Dict[str, EthereumClient]):
        """Initialize reader.

        Args:
            clients: EthereumClient per network name
        """
        self.clients = clients

    def readable_networks(self) -> List[str]:
        """Networks with a configured CampaignManager, sorted by name."""
        return sorted(
            name for name, client in self.clients.items() if client.network.contract_address(CAMPAIGN_MANAGER)
        )

    def get_campaign(self, network: str, campaign_id: str) -> Optional[OnChainCampaign]:
        """Read a campaign from the contract.

        Returns:
            The campaign, or None if the contract has no such id

        Raises:
            ConfigurationError: If the network or its CampaignManager is not configured
        """
        client = self.clients.get(network)
        if client is None:
            raise ConfigurationError(f"Network not configured: {network}")
        address = client.network.contract_address(CAMPAIGN_MANAGER)
        if not address:
            raise ConfigurationError(f"CampaignManager address not configured for {network}")

        contract = client.contract(CAMPAIGN_MANAGER, address)
        (
            _numeric_id,
            _internal_id,
            creator,
            _title,
            _description,
            _category,
            _image,
            goal,
            pledged,
            currency,
            _end_at,
            active,
        ) = contract.functions.campaigns(Web3.to_bytes(hexstr=campaign_id)).call()

        # Unknown ids return the zero struct
        if int(creator, 16) == 0:
            logger.debug(f"Campaign {campaign_id} not found on {network}")
            return None

        return OnChainCampaign(
            network=network,
            creator=creator.lower(),
            goal=int(goal),
            pledged=int(pledged),
            currency=currency,
            active=bool(active),
        )
