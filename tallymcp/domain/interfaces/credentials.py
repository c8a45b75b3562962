"""Interface for the credential holder.

The query client asks for a token on every cache miss and treats the
provider as opaque beyond "give me a token or fail".
"""

import abc
from typing import Awaitable, Union


class CredentialProvider(abc.ABC):
    """Abstract Base Class for supplying the Tally API token."""

    @abc.abstractmethod
    def get_api_key(self) -> Union[str, Awaitable[str]]:
        """Returns the current token, or an awaitable resolving to it.

        Raises:
            AuthenticationError: If no token is configured.
        """
        pass
