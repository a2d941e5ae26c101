from nvui.run import start

start()
