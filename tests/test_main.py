from unittest.mock import MagicMock

from clinicalgoto import main


def test_run_serves_app_with_uvicorn(monkeypatch):
    uvicorn_run = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", uvicorn_run)

    main.run()

    uvicorn_run.assert_called_once_with(
        "clinicalgoto.main:app",
        host=main.settings.host,
        port=main.settings.port,
        log_level=main.settings.log_level.lower(),
    )
