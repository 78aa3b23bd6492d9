from shared.helper.HelperConfig import HelperConfig
from shared.clients.store.StoreClientInterface import StoreClientInterface

class StoreClientManager:
    """
    Manager class to handle the entity store client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the store engine from ENV configuration.

        Returns:
            str: The capitalized store engine name (e.g. "Platform").

        Raises:
            ValueError: If no store engine is specified in the configuration.
        """
        engine = self.helper_config.get_optional_string_val("STORE_ENGINE")
        if not engine or not engine.strip():
            raise ValueError("No store engine specified in configuration.")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> StoreClientInterface:
        """
        Initializes the store client for the engine specified in the configuration.

        Returns:
            StoreClientInterface: The store client.

        Raises:
            ValueError: If the specified engine is not supported.
        """
        engine = self._get_engine_from_env()
        className = f"StoreClient{engine}"
        try:
            module = __import__(
                f"shared.clients.store.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported store engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated store client for engine: {engine}")
        return client

    def get_client(self) -> StoreClientInterface:
        """
        Returns the instantiated store client.
        """
        return self.client
