"""
Tracker and image host adapters for seed-tools

Tracker-specific and host-specific logic lives behind two interfaces so the pipeline
stays tracker-agnostic.

Available Adapters:
    - TrackerAdapter: Abstract base class defining the tracker contract
    - SeedpoolAdapter: UNIT3D upload API with search-endpoint dedupe
    - TorrentLeechAdapter: Announce-key form upload
    - ImageHostAdapter: Abstract base class for screenshot/cover hosts
    - CdnAdapter: scp to a self-hosted web root
    - ImgBBAdapter: ImgBB API

Supporting Classes:
    - TrackerFactory: Creates tracker adapters from the RunContext
    - TrackerConfigLoader: Loads and validates the YAML configuration tree

Architecture:
    Pipeline → TrackerFactory → TrackerAdapter (interface)
                                      ├── SeedpoolAdapter
                                      └── TorrentLeechAdapter

Modules are imported directly (seedtools.adapters.seedpool_adapter, ...); this
package does not re-export them.
"""
