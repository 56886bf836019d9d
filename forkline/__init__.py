"""forkline.

This package contains the backend selection and extension machinery used by a
long-lived fork of a mail server. It lets the fork ship alternative backend
implementations and extra behavior without editing the upstream code paths.

High-level architecture
-----------------------

The codebase is organized around a one-directional dependency rule:

- **Default (upstream) modules** implement the shared behavior and expose the
  points where it can be extended. They never import fork code.
- **Fork modules** (everything under ``forkline.fork``) add variants and hook
  handlers. They may import anything.

Core subpackages
----------------

- ``forkline.features``:

  - Capability/variant declarations collected in an immutable ``Catalog``.
  - The resolver that turns requested flags into a validated ``FeatureSet``.

- ``forkline.registry``:

  - The ``BackendRegistry`` that binds exactly one implementation per
    capability and hands it out uniformly.

- ``forkline.hooks``:

  - Declared hook points with explicit composition and failure rules, and the
    dispatcher that runs registered handlers in declared order.

- ``forkline.upstream``:

  - The built-in storage backend and the default delivery pipeline.

- ``forkline.fork``:

  - The Postgres storage variant, webhook delivery hooks, startup wiring, the
    command line and the management server.

Typical workflow
----------------

1. Read build flags and runtime selections from ``Settings``.
2. Resolve them against the fork catalog into a ``FeatureSet``.
3. Bind the registry and install the hook handlers of every active variant.
4. Seal the dispatcher and start serving.

The boundary rule is checked by ``forkline.boundary`` as part of the test
suite, so an upstream module that starts importing fork code fails the build.
"""

__version__ = "0.1.0"
