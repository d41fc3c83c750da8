"""
Timezone alias table

Maps legacy, abbreviated and renamed zone names onto the IANA name a
geolocation database reports, so equivalent zones do not count as a
mismatch. Names absent from the table are already canonical.
"""

from typing import Dict, Optional


TIMEZONE_ALIASES: Dict[str, str] = {
    # Asia
    "Asia/Calcutta": "Asia/Kolkata",
    "Asia/Culcutta": "Asia/Kolkata",
    "Asia/Saigon": "Asia/Ho_Chi_Minh",
    "Asia/Rangoon": "Asia/Yangon",
    "Asia/Istanbul": "Europe/Istanbul",
    "Asia/Chongqing": "Asia/Shanghai",
    "Asia/Harbin": "Asia/Shanghai",
    "Asia/Urumqi": "Asia/Shanghai",
    "Asia/Kashgar": "Asia/Shanghai",
    "Asia/Thimbu": "Asia/Thimphu",
    "Asia/Ashkhabad": "Asia/Ashgabat",
    "Asia/Dacca": "Asia/Dhaka",
    "Asia/Tel_Aviv": "Asia/Jerusalem",
    "JST": "Asia/Tokyo",
    "KST": "Asia/Seoul",
    "IST": "Asia/Kolkata",

    # Europe
    "Europe/Kiev": "Europe/Kyiv",
    "W-SU": "Europe/Moscow",
    "GB": "Europe/London",
    "GB-Eire": "Europe/London",
    "Eire": "Europe/Dublin",
    "CET": "Europe/Berlin",
    "CEST": "Europe/Berlin",
    "MET": "Europe/Paris",
    "MEST": "Europe/Paris",
    "GMT+1": "Europe/Berlin",
    "GMT+2": "Europe/Athens",
    "GMT+3": "Europe/Moscow",

    # Americas
    "US/Pacific": "America/Los_Angeles",
    "US/Eastern": "America/New_York",
    "US/Mountain": "America/Denver",
    "US/Central": "America/Chicago",
    "US/Hawaii": "Pacific/Honolulu",
    "US/Alaska": "America/Anchorage",
    "US/Arizona": "America/Phoenix",
    "US/Samoa": "Pacific/Samoa",
    "US/Indiana-Starke": "America/Chicago",
    "US/Indiana-Vevay": "America/New_York",
    "US/Indiana-Tell City": "America/Indiana/Tell_City",
    "US/Indiana-Knox": "America/Indiana/Knox",
    "Canada/Eastern": "America/Toronto",
    "Canada/Central": "America/Winnipeg",
    "Canada/Mountain": "America/Edmonton",
    "Canada/Pacific": "America/Vancouver",
    "America/Porto_Acre": "America/Rio_Branco",
    "America/Coral_Harbour": "America/Atikokan",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",

    # Australia / Oceania
    "Australia/NSW": "Australia/Sydney",
    "Australia/Victoria": "Australia/Melbourne",
    "Australia/Queensland": "Australia/Brisbane",
    "Australia/Tasmania": "Australia/Hobart",
    "Australia/ACT": "Australia/Canberra",
    "Australia/North": "Australia/Darwin",
    "Australia/West": "Australia/Perth",
    "Australia/South": "Australia/Adelaide",
    "AEST": "Australia/Brisbane",
    "AWST": "Australia/Perth",
    "NZDT": "Pacific/Auckland",
    "NZST": "Pacific/Auckland",
    "Pacific/Ponape": "Pacific/Pohnpei",
    "Pacific/Truk": "Pacific/Chuuk",
    "Pacific/Yap": "Pacific/Chuuk",

    # Africa
    "Africa/Asmera": "Africa/Asmara",
    "Africa/Timbuktu": "Africa/Bamako",
    "CAT": "Africa/Nairobi",
    "SAST": "Africa/Johannesburg",

    # UTC / GMT
    "GMT": "Etc/GMT",
    "UTC": "Etc/UTC",
}


def normalize_timezone(name: Optional[str]) -> Optional[str]:
    """
    Resolve a timezone name through the alias table.

    Args:
        name: Zone name as reported by a browser or a geolocation database

    Returns:
        Canonical zone name; empty or None input is returned unchanged

    Example:
        >>> normalize_timezone("Asia/Calcutta")
        'Asia/Kolkata'
    """
    if not name:
        return name
    return TIMEZONE_ALIASES.get(name, name)
