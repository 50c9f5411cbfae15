#!/usr/bin/env python3
"""
MoodMix HTTP Server Runner
"""

from moodmix.crosscutting.config import Settings
from moodmix.crosscutting.logging import setup_logging
from moodmix.interfaces.http import HTTPServer
from moodmix.interfaces.services import build_services


def main():
    """Run the HTTP server."""
    setup_logging('INFO')
    server = HTTPServer(
        services=build_services(Settings.from_env('.env')),
        host='localhost',
        port=3001,
        debug=True
    )
    server.run()


if __name__ == '__main__':
    main()
