from .email import EmailSender
from .sms import SMSSender
from .whatsapp import WhatsAppSender

# One sender per channel; dispatch and retry both go through these.
SENDERS = {
    sender.channel: sender
    for sender in (WhatsAppSender(), EmailSender(), SMSSender())
}


def get_sender(channel):
    try:
        return SENDERS[channel]
    except KeyError:
        raise ValueError(f'No sender registered for channel: {channel!r}') from None
