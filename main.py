from datetime import timedelta

from cmdtree import *


def start(context, flags):
    """start the server"""
    print("listening on %s:%d" % (flags["host"], flags["port"]))
    while not context.wait(flags["tick"].total_seconds()):
        pass


def stop(context, flags):
    """stop the server"""
    if flags["force"]:
        raise HandlerFailure("refusing to force-stop a server that is not running", status=3)


def register_server(tree):
    server = CommandNode(
        "server", "manage the server",
        flags=[FlagSpec("config", "c", envar="DEMO_CONFIG", descr="configuration file")],
    )
    server.attach(CommandNode("start", handler=start, flags=[
        FlagSpec("port", "p", kind="int", default=3000, envar="DEMO_PORT", descr="port to listen on"),
        FlagSpec("host", default="localhost", descr="interface to bind"),
        FlagSpec("tick", kind="duration", default=timedelta(seconds=1), descr="idle polling interval"),
    ]))
    server.attach(CommandNode("stop", handler=stop, flags=[
        FlagSpec("force", "f", kind="bool", descr="stop without waiting for requests"),
    ]))
    register(tree, (), server)


def register_users(tree):
    users = CommandNode("users", "manage users", aliases=["user"])

    @users.command("create")
    def create(context, flags):
        """create a user"""
        print("created %s (%s)" % (context.positionals[0] if context.positionals else "?", flags["role"]))

    users.declare(FlagSpec("role", kind="enum", choices=["admin", "member"], default="member"))
    register(tree, (), users)


program = Program("demo", "a small command tree", "1.0.0", fancy=False)
program.assemble(register_server, register_users)


if __name__ == '__main__':
    program.main()
