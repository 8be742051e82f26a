from enum import Enum


class VoucherState(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLAIMED = "claimed"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class VoucherType(str, Enum):
    DISCOUNT = "discount"
    FIXED_VALUE = "fixed_value"


class VoucherCodeType(str, Enum):
    QR = "qr"
    SHORT = "short"
    STATIC = "static"


class CustomerVoucherStatus(str, Enum):
    CLAIMED = "claimed"
    REDEEMED = "redeemed"


class VoucherScanType(str, Enum):
    CUSTOMER = "customer"
    BUSINESS = "business"


class VoucherScanSource(str, Enum):
    CAMERA = "camera"
    GALLERY = "gallery"
    LINK = "link"
    SHARE = "share"
