from .client_creator import TEST_API_KEY, TEST_PRIV_KEY, TEST_RPC_URL, create_test_client

__all__ = ["create_test_client", "TEST_API_KEY", "TEST_PRIV_KEY", "TEST_RPC_URL"]
