"""Fixed device signature presented to upstream on behalf of every client.

Android app properties are used: a web client whose version never updates
would look suspicious, an Android install that is never updated does not.
"""
import base64
import json

SUPER_PROPERTIES = {
    "os": "Android",
    "browser": "Discord Android",
    "device": "a20e",  # Samsung Galaxy A20e
    "system_locale": "en-US",
    "has_client_mods": False,
    "client_version": "262.5 - rn",
    "release_channel": "alpha",
    "device_vendor_id": "17503929-a4b8-4490-87bf-0222adfdadc8",
    "design_id": 2,
    "browser_user_agent": "",
    "browser_version": "",
    "os_version": "34",  # Android 14
    "client_build_number": 3463,
    "client_event_source": None,
}

# Overwrites the identify properties sent by the constrained client
IDENTIFY_OVERRIDE = {
    "os": SUPER_PROPERTIES["os"],
    "browser": SUPER_PROPERTIES["browser"],
}


def encode_super_properties(props: dict = SUPER_PROPERTIES) -> str:
    raw = json.dumps(props, separators=(",", ":")).encode()
    return base64.b64encode(raw).decode()


DEFAULT_HEADERS = {
    "User-Agent": "Discord-Android/262205;RNA",
    "X-Super-Properties": encode_super_properties(),
    "X-Discord-Locale": "en-US",
    "X-Discord-Timezone": "Europe/Kyiv",
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br, zstd",
    "Alt-Used": "discord.com",
    "Cookie": "locale=en-US",
}


def rewrite_identity(payload) -> bool:
    """Mask the client identification fields of an identify payload in place.

    Only keys the client actually sent are replaced. Returns True when
    something was rewritten.
    """
    if not isinstance(payload, dict):
        return False
    props = payload.get("properties")
    if not isinstance(props, dict):
        return False
    changed = False
    for key, value in IDENTIFY_OVERRIDE.items():
        if props.get(key):
            props[key] = value
            changed = True
    return changed
