"""Main module for launchcraft API.

The API is split between the version index and metadata resolution (`manifest`), the
installation planning (`plan`), the multithreaded downloader (`download`), the native
libraries installer (`natives`) and the launch arguments engine (`args`). The `standard`
module ties all of them together in the `Version` class, which should be the entry point
for most usages.
"""

LAUNCHER_NAME = "launchcraft"
LAUNCHER_VERSION = "0.3.0"
LAUNCHER_AUTHORS = ["launchcraft contributors"]
LAUNCHER_URL = "https://github.com/launchcraft/launchcraft"
