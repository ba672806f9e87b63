# ################################################################################################ #
# AccuRev date and time helpers                                                                    #
#                                                                                                  #
# AccuRev XML carries times as Unix epoch seconds while its -t time-spec arguments take a local    #
# "YYYY/MM/DD HH:MM:SS" string.                                                                   #
# ################################################################################################ #

import datetime

import pytz

acDateFormat = "%Y/%m/%d %H:%M:%S"

# Range of the 32 bit epoch values AccuRev stores.
minAcDate = datetime.datetime(1970, 1, 1)
maxAcDate = datetime.datetime(2038, 1, 19, 3, 14, 7)

def GetTimezone(tz):
    if tz is None or isinstance(tz, datetime.tzinfo):
        return tz
    return pytz.timezone(tz)

def AcDate2DateTime(value, tz=None):
    """Converts epoch seconds to a datetime. With tz (an Olson name or tzinfo) the result is aware
    and expressed in that zone, otherwise it is a naive local time."""
    if value is None:
        return None
    if type(value) is str:
        value = float(value)
    tz = GetTimezone(tz)
    if tz is None:
        return datetime.datetime.fromtimestamp(value)
    utc = datetime.datetime.fromtimestamp(value, pytz.utc)
    return utc.astimezone(tz)

def DateTime2AcDate(datetimeValue):
    if datetimeValue is None:
        return None
    if not isinstance(datetimeValue, datetime.datetime):
        raise TypeError('Invalid argument. Expected a datetime type.')
    return datetimeValue.strftime(acDateFormat)

def AcTimeRange(start, end):
    # accurev hist -t only returns the transactions in a time range when the later time is given
    # first. AccuRev defect 22659.
    return "{0}-{1}".format(DateTime2AcDate(end), DateTime2AcDate(start))

def AcDateValid(datetimeValue):
    if datetimeValue is None:
        return False
    if datetimeValue.tzinfo is not None:
        datetimeValue = datetimeValue.astimezone(pytz.utc).replace(tzinfo=None)
    return minAcDate <= datetimeValue <= maxAcDate

class AcDuration(object):
    """Length of an AccuRev session. Formats as "[Nd ]HH:MM"."""
    def __init__(self, minutes):
        self.delta = datetime.timedelta(minutes=float(minutes))

    def __repr__(self):
        return "AcDuration(minutes=" + repr(self.TotalMinutes()) + ")"

    def __str__(self):
        d = self.delta.days
        h, rem = divmod(self.delta.seconds, 3600)
        m = rem // 60
        if d > 0:
            return "{d}d {h:0>2d}:{m:0>2d}".format(d=d, h=h, m=m)
        return "{h:0>2d}:{m:0>2d}".format(h=h, m=m)

    def __eq__(self, other):
        if not isinstance(other, AcDuration):
            return NotImplemented
        return self.delta == other.delta

    def __lt__(self, other):
        if not isinstance(other, AcDuration):
            return NotImplemented
        return self.delta < other.delta

    def __hash__(self):
        return hash(self.delta)

    def TotalMinutes(self):
        return self.delta.total_seconds() / 60.0
