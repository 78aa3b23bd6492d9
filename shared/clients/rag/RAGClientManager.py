from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface

class RAGClientManager:
    """
    Manager class to handle the RAG client based on configuration.

    The vector index is optional: without RAG_ENGINE the manager holds no
    client and every index operation degrades to a no-op.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str | None:
        """
        Reads the RAG engine from ENV configuration.

        Returns:
            str | None: The capitalized RAG engine name (e.g. "Qdrant"), or None if unset.
        """
        engine = self.helper_config.get_optional_string_val("RAG_ENGINE")
        if not engine or not engine.strip():
            return None
        #lowercase all and uppcercase first letter for better comparison and display
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> RAGClientInterface | None:
        """
        Initializes the RAG client for the engine specified in the configuration.

        Returns:
            RAGClientInterface | None: The RAG client, or None if no engine is configured.

        Raises:
            ValueError: If the specified engine is not supported.
        """
        engine = self._get_engine_from_env()
        if engine is None:
            self.logging.warning("No RAG engine configured. Vector search and indexing are disabled.")
            return None

        className = f"RAGClient{engine}"
        # try to import the class from shared.clients.rag.{engine}
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated RAG client for engine: {engine}")
        return client

    def get_client(self) -> RAGClientInterface | None:
        """
        Returns the instantiated RAG client.

        Returns:
            RAGClientInterface | None: The RAG client instance, or None if disabled.
        """
        return self.client
