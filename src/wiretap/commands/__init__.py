"""Built-in CLI sub-commands for wiretap.

* :mod:`~wiretap.commands.send` -- ``send``, ``show``, ``curl`` and
  ``fingerprint``, the request/response workflow.
* :mod:`~wiretap.commands.cache` -- inspect and prune the response cache.
* :mod:`~wiretap.commands.watch` -- stream live-update topics.
* :mod:`~wiretap.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (``cache``,
``config``) or plain callbacks registered on the root app by
:func:`wiretap.app.register_commands`.
"""
