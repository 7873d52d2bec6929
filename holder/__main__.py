from holder.cli import run

run()
