"""Command names and user-facing response texts."""

CMD_PING = "ping"
CMD_CREATE_ROLE = "createrole"
CMD_REMOVE_ROLE = "removerole"
CMD_ADD_TO_ROLE = "addtorole"
CMD_REMOVE_FROM_ROLE = "removefromrole"
CMD_LIST_ROLES = "listroles"
CMD_LIST_MEMBERS = "listmembers"
CMD_HELP = "help"
CMD_STATUS = "status"

# Commands that mutate the directory and require the admin identity
ADMIN_COMMANDS = frozenset(
    {
        CMD_CREATE_ROLE,
        CMD_REMOVE_ROLE,
        CMD_ADD_TO_ROLE,
        CMD_REMOVE_FROM_ROLE,
    }
)

MSG_PONG = "🏓 pong"
MSG_UNAUTHORIZED = "❌ You are not authorized to use this command."
MSG_PROVIDE_ROLE_NAME = "❌ Please provide a role name."
MSG_USAGE_ADD_TO_ROLE = "❌ Usage: /addtorole <rolename> <username>"
MSG_USAGE_REMOVE_FROM_ROLE = "❌ Usage: /removefromrole <rolename> <username>"
MSG_NO_ROLES = "📋 No roles found."
MSG_BOT_HEALTHY = "🟢 Bot is running and healthy!"
MSG_UNKNOWN_COMMAND = "❌ Unknown command. Use /help to see available commands."

PREFIX_ERROR = "❌ Error: {}"
PREFIX_SUCCESS = "✅ {}"
PREFIX_INFO = "📋 {}"
PREFIX_PING = "📢 Pinging role '{}': "
PREFIX_MENTION = "Pinging role @{}: "
MSG_NO_USERS_IN_ROLE = "No users found in role '{}'"
MSG_USERS_IN_ROLE = "Users in role '{}': {}"

HELP_MESSAGE = """🤖 **Telegram Role Bot Commands**

**General Commands:**
/ping - Test if the bot is working
/ping <rolename> - Ping all users in a role
/listroles - List all roles
/listmembers <rolename> - List members of a role
/help - Show this help message
/status - Check that the bot is running

**Admin Commands:**
/createrole <rolename> - Create a new role
/removerole <rolename> - Remove a role
/addtorole <rolename> <username> - Add a user to a role
/removefromrole <rolename> <username> - Remove a user from a role

**Role Mentions:**
@<rolename> - Ping all users in a role

**Examples:**
/ping developers
/createrole developers
/addtorole developers john_doe
@developers"""
