from meteo_server.main import run

run()
