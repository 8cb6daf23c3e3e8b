# ABOUTME: helmgen package initialization
# ABOUTME: Exposes version information for the Helm descriptor generator

"""
helmgen - Consistent Helm deployment descriptors for multi-application systems.

=============================================================================
WHAT IS THIS PACKAGE?
=============================================================================

helmgen looks at a directory holding several applications (gateways,
microservices, monoliths), asks how they should be deployed, and produces
one Helm chart per application plus the shared charts and shell scripts
needed to install them together.

The hard part is not writing YAML. It is making sure that a dozen
independently-built applications end up with:

- unique, registry-prefixed image names
- the same JWT signing secret (so tokens issued by one service are accepted
  by every other one)
- consistent database clustering parameters
- one namespace, one service discovery backend, one routing model

=============================================================================
PIPELINE OVERVIEW
=============================================================================

    Store -> Collector -> Resolver/Generator -> Reconciler -> Writer -> Reporter

1. store.py        <- Previous answers (.yo-rc.json), read at start
2. collector.py    <- Ordered deployment questions
3. images.py       <- Target image names and push command
   credentials.py  <- JWT secret, database password
4. reconciler.py   <- One validated DeploymentPlan, committed to the store
5. writer.py       <- Helm charts and scripts
6. reporter.py     <- Push instructions and warnings

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

helmgen/
├── __init__.py          <- YOU ARE HERE: Package entry point
├── cli.py               <- Command line entry point
├── config.py            <- Generator settings (env vars)
├── errors.py            <- Error taxonomy and advisory warnings
├── models.py            <- ApplicationConfig, DeploymentAnswers, DeploymentPlan
├── pipeline.py          <- Stage orchestration
├── ...                  <- One module per pipeline stage
└── utils/
    └── logging.py       <- Structured logging and the generation audit trail
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
