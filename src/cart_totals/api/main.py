from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from cart_totals.api import state
from cart_totals.engine import CartTotals, Coupon, Fee, Product, ProductLineItem, ShippingRate
from cart_totals.errors import CartTotalsError

app = FastAPI(
    title="Cart Totals API",
    description="Calculates cart subtotals, discounts, taxes and grand totals",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LineIn(BaseModel):
    product_id: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    tax_class: str = ""
    taxable: bool = True
    key: Optional[str] = None


class CouponIn(BaseModel):
    code: str
    discount_type: str
    amount: Decimal = Field(ge=0)
    product_ids: List[str] = []
    excluded_product_ids: List[str] = []


class FeeIn(BaseModel):
    name: str
    amount: Decimal
    taxable: bool = False
    tax_class: str = ""


class ShippingIn(BaseModel):
    method_id: str
    cost: Decimal = Field(ge=0)
    taxes: Dict[str, Decimal] = {}


class LocationIn(BaseModel):
    country: str = ""
    state: str = ""


class CalcRequest(BaseModel):
    items: List[LineIn]
    coupons: List[CouponIn] = []
    fees: List[FeeIn] = []
    shipping: List[ShippingIn] = []
    location: LocationIn = LocationIn()
    calculate_tax: bool = True


def build_cart(req: CalcRequest) -> CartTotals:
    """Translate a request body into a CartTotals instance."""
    settings = state.settings
    provider = state.rate_table.for_location(
        req.location.country,
        req.location.state,
        base_country=settings.base_country,
        base_state=settings.base_state,
    )

    cart = CartTotals(settings=settings, rate_provider=provider)
    cart.set_calculate_tax(req.calculate_tax)
    cart.set_items([
        ProductLineItem(
            product=Product(
                product_id=line.product_id,
                price=line.price,
                tax_class=line.tax_class,
                taxable=line.taxable,
            ),
            quantity=line.quantity,
            key=line.key or "",
        )
        for line in req.items
    ])
    cart.set_coupons({
        c.code: Coupon(
            code=c.code,
            discount_type=c.discount_type,
            amount=c.amount,
            product_ids=tuple(c.product_ids),
            excluded_product_ids=tuple(c.excluded_product_ids),
        )
        for c in req.coupons
    })
    cart.set_fees([Fee(name=f.name, amount=f.amount, taxable=f.taxable, tax_class=f.tax_class) for f in req.fees])
    cart.set_shipping([ShippingRate(method_id=s.method_id, cost=s.cost, taxes=dict(s.taxes)) for s in req.shipping])
    return cart


@app.get("/")
async def root():
    return {"status": "online", "message": "Cart Totals API Active"}


@app.post("/calculate")
async def calculate_totals(req: CalcRequest):
    try:
        totals = build_cart(req).calculate()
        return jsonable_encoder(totals)
    except CartTotalsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/system/status")
async def get_status():
    settings = state.settings
    return {
        "engine_active": True,
        "tax_enabled": settings.tax_enabled,
        "prices_include_tax": settings.prices_include_tax,
        "rates_loaded": state.rate_table.loaded,
        "rates_count": len(state.rate_table.rates_df),
    }
