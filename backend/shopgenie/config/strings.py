# /shopgenie/config/strings.py

# This file contains all user-facing strings, making them easy to manage,
# update, and eventually localize without changing application logic.

# Greetings and help
WELCOME_MESSAGE = """🛒 Welcome to *ShopGenie*!

I help you order groceries from Zepto, Blinkit and Swiggy Instamart, compare prices and get checkout links for each app.

Start by connecting a grocery app, e.g. *login zepto*."""

HELP_MESSAGE = """🛒 *ShopGenie Help*

*Ordering*
• "Order 2 kg rice and 1 litre milk to 12 MG Road, Bangalore"
• "Add bread" / "Remove bread"
• "1 for milk" or "all 1" to pick product suggestions, then "add selected"

*Cart & checkout*
• "show cart", "show prices", "checkout"
• During checkout: "zepto for milk", "skip bread", "edit cart", "confirm order", "cancel checkout"

*Accounts*
• "login zepto", "login blinkit", "login instamart"
• "connected retailers" to see your linked apps

*Reset*
• "reset" clears the current conversation, "reset all" also removes linked apps and empties your cart
• "stop" to unsubscribe"""

UNSUBSCRIBED = "You've been unsubscribed and won't receive any more messages. Send *start* anytime to come back."
UNKNOWN_INTENT = "🤔 Sorry, I didn't understand that. Type *help* to see what I can do."

# Session resets
SESSION_CLEARED = "✅ Session cleared. You can start fresh! Type *help* to see what I can do."
ALL_DATA_CLEARED = "✅ Session cleared, your connected apps were removed and your cart is empty. You can start fresh!"

# Authentication
RETAILER_NOT_SUPPORTED = "❌ Sorry, *{retailer}* isn't supported yet.\n\nSupported apps:\n{retailers}\n\nSend e.g. *login zepto*."
CHOOSE_RETAILER_TO_CONNECT = "🔐 Which app would you like to connect?\n\n{retailers}\n\nSend e.g. *login zepto*."
RETAILER_ALREADY_CONNECTED = "✅ You're already connected to *{retailer_name}*."
AUTH_CHOOSE_METHOD = """🔐 Let's connect your *{retailer_name}* account.

How would you like to log in?
1️⃣ Phone (OTP)
2️⃣ Email & password

Reply *phone* / *1* or *email* / *2*."""
AUTH_ASK_PHONE = "📱 Please send the phone number registered with *{retailer_name}*, including the country code (e.g. +919876543210)."
AUTH_INVALID_PHONE = "❌ That doesn't look like a valid phone number. Please include the country code, e.g. +919876543210."
AUTH_OTP_SENT = "📨 We've sent a {otp_length}-digit code to {phone_number}. Please reply with the code.\n\nDidn't get it? Send *resend otp*."
AUTH_INVALID_OTP = "❌ The code must be exactly {otp_length} digits. Please try again or send *resend otp*."
AUTH_OTP_RESENT = "📨 A new code was sent to {phone_number}."
AUTH_NO_ACTIVE_OTP = "ℹ️ There's no active OTP request. Send *login <app>* to connect an account."
AUTH_ASK_EMAIL = "📧 Please send the email address you use for *{retailer_name}*."
AUTH_INVALID_EMAIL = "❌ That doesn't look like a valid email address. Please try again."
AUTH_ASK_PASSWORD = "🔑 Now send your *{retailer_name}* password."
AUTH_SUCCESS = "🎉 Your *{retailer_name}* account is connected! You can now order groceries, e.g. \"Order milk and bread\"."
CREDENTIAL_INPUT_GUIDANCE = "🔐 To connect an account, start with *login <app>*, e.g. *login zepto*."
CONNECTED_RETAILERS = "🔗 *Your connected apps:*\n\n{retailers}"
NO_CONNECTED_RETAILERS = "You haven't connected any grocery apps yet. Send *login zepto*, *login blinkit* or *login instamart*."
CONNECT_RETAILERS_FIRST = "🔐 Please connect your retailer accounts first so I can compare prices for you.\n\nSend *login zepto*, *login blinkit* or *login instamart*."

# Addresses
ADDRESS_CONFIRM_REQUEST = "📍 I found this address:\n\n{address}\n\nIs this correct? Reply *yes* or *no*."
ADDRESS_REQUEST = "📍 Where should I deliver? Please send your delivery address or share your location."
ADDRESS_CONFIRMED = "✅ Address confirmed! Now tell me what you'd like to order, e.g. \"Order milk and bread\"."
ADDRESS_REJECTED = "No problem. Please send the correct delivery address or share your location."
ADDRESS_NOTHING_PENDING = "ℹ️ There's no address waiting for confirmation. Send your delivery address to set one."
ADDRESS_INVALID = "❌ I couldn't understand that address. Please send a complete delivery address."

# Ordering
ORDER_ASK_ITEMS = "🛒 What would you like to order? e.g. \"Order 2 kg rice and milk\"."
ORDER_SUGGESTIONS_HEADER = "🛒 Here are some options for your order:"
ORDER_SUGGESTIONS_FOOTER = "Reply *<number> for <item>* (e.g. *1 for milk*) or *all <number>*, then send *add selected*. Send *cancel order* to stop."
ORDER_NO_SUGGESTIONS = "No product options found for {item}; it will be added as requested."
ORDER_SELECTION_RECORDED = "✅ Selected {product} for {item}."
ORDER_INVALID_SELECTION = "❌ Option {number} isn't available for {item}. Please choose a listed number."
ORDER_UNKNOWN_ITEM = "❌ {item} isn't part of this order. Items: {items}."
ORDER_NO_ITEMS_SELECTED = "ℹ️ No items selected. Start an order first, e.g. \"Order milk and bread\"."
ORDER_ITEMS_ADDED = "✅ Added to your cart:\n\n{items}\n\nSend *checkout* when you're ready, or keep adding items."
ORDER_CANCELLED = "❌ Order cancelled. Nothing was added to your cart."

# Cart
CART_EMPTY = "🛒 Your cart is empty. Send e.g. \"Order milk and bread\" to get started."
CART_SUMMARY = "🛒 *Your cart:*\n\n{items}\n\nSend *show prices* to compare or *checkout* to continue."
CART_ITEMS_ADDED = "✅ Added {items} to your cart."
CART_ITEMS_REMOVED = "🗑️ Removed {items} from your cart."
CART_ITEM_NOT_FOUND = "❌ I couldn't find {items} in your cart."
CART_NOTHING_TO_ADD = "❓ Which items should I add? e.g. \"Add bread and eggs\"."
CART_RETAILER_PREFERENCE = "✅ I'll prefer *{retailer_name}* for {items}."
CART_RETAILER_NOT_CONNECTED = "❌ You're not connected to *{retailer}*. Send *login {retailer}* first."
PRODUCT_SELECTION_RECORDED = "✅ {item}: selected {product}."
PRICE_COMPARISON_HEADER = "💰 *Price comparison:*"

# Checkout
CHECKOUT_ITEM_PROMPT = "🧾 *Item {position} of {total}: {item}*\n\n{prices}\n\nReply *<app> for {item}* (e.g. *{example} for {item}*) or *skip {item}*."
CHECKOUT_NO_PRICES = "No prices found for this item."
CHECKOUT_RETAILER_SELECTED = "✅ {retailer_name} for {item}: {product}, ₹{price} (delivery in {delivery_time})."
CHECKOUT_RETAILER_NO_PRICE = "❌ No price available at {retailer_name} for {item}. Please pick another app or send *skip {item}*."
CHECKOUT_ITEM_SKIPPED = "⏭️ Skipped {item}."
CHECKOUT_UNKNOWN_ITEM = "❌ {item} isn't in your checkout list. Current item: {current}."
CHECKOUT_SUMMARY = "🧾 *Your final cart:*\n\n{summary}\n\n*Total: ₹{total}*\n\nSend *confirm order* to get checkout links, *edit cart* to change selections or *cancel checkout*."
CHECKOUT_INCOMPLETE = "ℹ️ Please choose a retailer or skip each item first. {remaining} item(s) left; current item: {current}."
CHECKOUT_NO_ACTIVE = "ℹ️ There's no checkout in progress. Send *checkout* to start one."
CHECKOUT_NOTHING_SELECTED = "ℹ️ You skipped every item, so there's nothing to order. Send *edit cart* to choose retailers or *cancel checkout*."
CHECKOUT_CONFIRMED = "🎉 *Order ready!* Open each link to complete your purchase:\n\n{links}\n\n*Total: ₹{total}*"
CHECKOUT_CANCELLED = "❌ Checkout cancelled. Your cart is still saved."
NOTHING_TO_CANCEL = "ℹ️ Nothing to cancel. Type *help* to see what I can do."

# Errors
ERROR_GENERAL = "😔 Sorry, something went wrong while processing your message. Please try again in a moment."
ERROR_ACCOUNT_SETUP = "🔧 Let's set up your account first. Send *login zepto*, *login blinkit* or *login instamart* to connect a grocery app."
