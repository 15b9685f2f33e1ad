"""
Script execution backends for scriptbench.

See backends/base.py for the ScriptBackend ABC and registry,
backends/v8_backend.py for embedded V8 (mini-racer),
backends/node_backend.py for the ``node`` child-process backend and
backends/duktape_backend.py for the legacy Duktape interpreter (dukpy).

Import individual sub-modules directly, or call
:func:`~scriptbench.backends.base.load_all_backends`:

    from scriptbench.backends.base import load_all_backends, resolve_backend
    load_all_backends()
    backend = resolve_backend("v8")
"""
