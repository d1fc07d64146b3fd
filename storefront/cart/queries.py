"""GraphQL documents for the Storefront cart API."""

CART_FRAGMENT = """
fragment CartFields on Cart {
  id
  checkoutUrl
  totalQuantity
  createdAt
  updatedAt
  cost {
    subtotalAmount { amount currencyCode }
    totalAmount { amount currencyCode }
    totalTaxAmount { amount currencyCode }
    totalDutyAmount { amount currencyCode }
  }
  lines(first: 100) {
    nodes {
      id
      quantity
      merchandise {
        ... on ProductVariant { id }
      }
      cost {
        subtotalAmount { amount currencyCode }
        totalAmount { amount currencyCode }
      }
    }
  }
}
"""

USER_ERRORS = "userErrors { field message code }"

CART_CREATE_MUTATION = CART_FRAGMENT + f"""
mutation CartCreate($input: CartInput, $country: CountryCode, $language: LanguageCode)
  @inContext(country: $country, language: $language) {{
  cartCreate(input: $input) {{
    cart {{ ...CartFields }}
    {USER_ERRORS}
  }}
}}
"""

CART_LINES_ADD_MUTATION = CART_FRAGMENT + f"""
mutation CartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!, $country: CountryCode, $language: LanguageCode)
  @inContext(country: $country, language: $language) {{
  cartLinesAdd(cartId: $cartId, lines: $lines) {{
    cart {{ ...CartFields }}
    {USER_ERRORS}
  }}
}}
"""

CART_LINES_UPDATE_MUTATION = CART_FRAGMENT + f"""
mutation CartLinesUpdate($cartId: ID!, $lines: [CartLineUpdateInput!]!, $country: CountryCode, $language: LanguageCode)
  @inContext(country: $country, language: $language) {{
  cartLinesUpdate(cartId: $cartId, lines: $lines) {{
    cart {{ ...CartFields }}
    {USER_ERRORS}
  }}
}}
"""

CART_LINES_REMOVE_MUTATION = CART_FRAGMENT + f"""
mutation CartLinesRemove($cartId: ID!, $lineIds: [ID!]!, $country: CountryCode, $language: LanguageCode)
  @inContext(country: $country, language: $language) {{
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {{
    cart {{ ...CartFields }}
    {USER_ERRORS}
  }}
}}
"""

CART_QUERY = CART_FRAGMENT + """
query Cart($cartId: ID!, $country: CountryCode, $language: LanguageCode)
  @inContext(country: $country, language: $language) {
  cart(id: $cartId) { ...CartFields }
}
"""
