"""
Example: Using trojanws as a library in your Python application
"""

import asyncio
import logging
import os
from trojanws import RelayConfig, RelayServer


async def main():
    """
    Example of embedding the relay in your application.
    """
    # Optional: Configure via environment variables
    os.environ["PASSWORD"] = "MySharedPassword"
    os.environ["PROXY_IPS"] = "192.168.1.1:443,192.168.1.2"

    server = RelayServer(RelayConfig.from_env())

    # Start the relay (this will block until SIGINT/SIGTERM)
    await server.start()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutting down...")
