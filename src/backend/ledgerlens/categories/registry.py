"""
Category registry: the canonical list of transaction categories.

Every consumer derives its category knowledge from CATEGORY_REGISTRY:
- auto-categorizer (vendor keyword rules, amount hints, preferred types)
- LLM statement parser (allowed categories and guideline block)
- query routing (aliases)
- database seeding (default categories and sub-categories)

Vendor patterns are matched top-to-bottom. A plain string matches as a
case-insensitive substring; a VendorPattern can require word boundaries
and carry exclusions.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class VendorPattern:
    """Keyword with optional word-boundary matching and exclusions."""
    keyword: str
    word_boundary: bool = False
    exclude: Tuple[str, ...] = ()


VendorKeyword = Union[str, VendorPattern]


@dataclass(frozen=True)
class AmountHint:
    """Typical amount range for a category (inclusive bounds)."""
    typical_min: Optional[float] = None
    typical_max: Optional[float] = None


@dataclass(frozen=True)
class SubcategoryDefinition:
    slug: str
    name: str
    sort_order: int
    icon: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class CategoryDefinition:
    """Full category definition."""
    slug: str
    name: str
    icon: str
    color: str
    sort_order: int
    is_default: bool
    vendor_patterns: Tuple[VendorKeyword, ...]
    query_aliases: Tuple[str, ...]
    llm_guideline: str
    amount_hints: Optional[AmountHint] = None
    preferred_types: Tuple[str, ...] = ()
    subcategories: Tuple[SubcategoryDefinition, ...] = field(default_factory=tuple)


def _wb(keyword: str, *exclude: str) -> VendorPattern:
    return VendorPattern(keyword=keyword, word_boundary=True, exclude=tuple(exclude))


CATEGORY_REGISTRY: Tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        slug='food-dining',
        name='Food & Dining',
        icon='🍽️',
        color='#f59e0b',
        sort_order=1,
        is_default=True,
        vendor_patterns=(
            # Restaurants & fast food (US)
            'mcdonald', 'burger king', 'wendy', 'subway', 'starbucks', 'dunkin',
            'chipotle', 'taco bell', 'pizza hut', 'domino', 'papa john',
            'chick-fil-a', 'popeye', 'kfc', 'panera', 'five guys', 'panda express',
            'olive garden', 'applebee', 'ihop', 'denny', 'waffle house', 'chili',
            'outback', 'red lobster', 'buffalo wild', 'sushi', 'thai',
            'chinese restaurant', 'indian restaurant',
            # Food delivery
            'doordash', 'uber eats', 'grubhub', 'postmates', 'instacart', 'zomato',
            'swiggy', 'food delivery', 'eatsure', 'box8',
            # Indian chains & QSRs
            'haldiram', 'barbeque nation', 'mainland china', 'sagar ratna',
            'saravana bhavan', 'paradise biryani', 'behrouz', 'faasos',
            'mojo pizza', 'burger singh', 'wow momo', 'chai point', 'chaayos',
            'third wave coffee', 'blue tokai', 'starbucks india', 'chowman',
            # Coffee & bakeries
            'coffee', 'cafe', 'bakery', 'tim horton', 'peet',
            # Generic
            'restaurant', 'dining', 'eatery', 'bistro', _wb('grill'), 'diner',
            'pizzeria', _wb('deli'), 'catering', 'dhaba', 'bhojanalaya',
            'food court', 'hawker', 'noodle', 'ramen', 'pho', 'patisserie',
            'boulangerie', 'trattoria', 'tavern',
            _wb('pub', 'public', 'publish', 'republic'),
            'bar & grill', 'tapas', 'kebab', 'shawarma', 'falafel', 'canteen',
            _wb('mess'), 'tiffin', 'food stall',
        ),
        query_aliases=(
            'dining', 'restaurant', 'food', 'meal', 'lunch', 'dinner', 'breakfast',
            'eating out', 'takeout', 'delivery', 'dine', 'eat', 'cafe', 'coffee',
        ),
        llm_guideline='Restaurants, cafes, food delivery (Swiggy, Zomato, DoorDash), bars, pubs, coffee shops',
        amount_hints=AmountHint(3, 500),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('restaurants', 'Restaurants', 1, icon='🍴'),
            SubcategoryDefinition('coffee-cafes', 'Coffee & Cafes', 2, icon='☕'),
            SubcategoryDefinition('food-delivery', 'Food Delivery', 3, icon='🛵'),
            SubcategoryDefinition('fast-food', 'Fast Food', 4, icon='🍔'),
            SubcategoryDefinition('bars-pubs', 'Bars & Pubs', 5, icon='🍻'),
        ),
    ),
    CategoryDefinition(
        slug='groceries',
        name='Groceries',
        icon='🛒',
        color='#22c55e',
        sort_order=2,
        is_default=True,
        vendor_patterns=(
            'walmart', 'target', 'costco', 'kroger', 'safeway', 'whole foods',
            'trader joe', 'aldi', 'publix', 'h-e-b', 'heb', 'meijer', 'stop & shop',
            'giant', 'food lion', 'wegman', 'sprout', 'fresh market',
            'piggly wiggly', 'winn dixie', 'grocery', 'supermarket',
            _wb('market', 'stock market', 'marketing', 'marketplace'),
            'farm stand', 'big bazaar', 'reliance fresh', 'dmart',
            'more supermarket', 'nature basket', 'bigbasket', 'jiomart', 'blinkit',
            'zepto',
            # International convenience stores
            '7-eleven', '7 eleven', 'seven eleven', 'lawson', 'familymart',
            'family mart', 'ministop', 'circle k', 'wawa', 'cold storage',
            'fairprice', 'don don donki', 'hypermarket', 'provision', 'kirana',
        ),
        query_aliases=('groceries', 'grocery', 'supermarket', 'food shopping', 'provisions'),
        llm_guideline='Grocery stores, supermarkets, convenience stores (7-Eleven, FamilyMart, Lawson)',
        amount_hints=AmountHint(10, 1000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='shopping',
        name='Shopping',
        icon='🛍️',
        color='#ec4899',
        sort_order=3,
        is_default=True,
        vendor_patterns=(
            'amazon', 'ebay', 'etsy', 'shopify', 'best buy', 'apple store',
            'apple.com', 'nike', 'adidas', 'zara', 'h&m', 'uniqlo', 'gap',
            'old navy', 'nordstrom', 'macy', 'marshalls', 'tj maxx', 'ross', 'ikea',
            'home depot', 'lowe', 'bed bath', 'pottery barn', 'wayfair',
            'overstock', 'wish.com', 'aliexpress', 'flipkart', 'myntra', 'ajio',
            'meesho', 'snapdeal', 'nykaa', 'tata cliq', 'croma', 'reliance digital',
            'vijay sales', 'pepperfry', 'urban ladder', 'lenskart', 'firstcry',
            'purplle', 'mamaearth', 'bewakoof', 'boat', 'amazon pay',
            'amazon india',
            'duty free', 'lotte', 'don quijote', 'daiso', 'miniso', 'muji',
            'decathlon', 'cotton on', 'charles & keith', _wb('mall'),
            'department store', 'retail', 'outlet', 'emporium', 'gift shop',
            'souvenir', 'boutique', _wb('store', 'app store', 'play store'),
        ),
        query_aliases=(
            'shopping', 'clothes', 'clothing', 'amazon', 'online shopping', 'retail',
            'store', 'purchase',
        ),
        llm_guideline='Duty-free shops, malls, retail stores, online shopping (Amazon, Flipkart)',
        amount_hints=AmountHint(5, 50000),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('online-shopping', 'Online Shopping', 1, icon='📦'),
            SubcategoryDefinition('clothing', 'Clothing & Apparel', 2, icon='👕'),
            SubcategoryDefinition('electronics', 'Electronics', 3, icon='📱'),
            SubcategoryDefinition('home-garden', 'Home & Garden', 4, icon='🏡'),
        ),
    ),
    CategoryDefinition(
        slug='transportation',
        name='Transportation',
        icon='🚗',
        color='#3b82f6',
        sort_order=4,
        is_default=True,
        vendor_patterns=(
            'uber', 'lyft', 'taxi', 'cab', 'ola', 'grab', 'rapido', 'namma yatri',
            'yulu', 'metro',
            VendorPattern('subway', exclude=('subway sandwich', 'subway restaurant')),
            'mta', 'bart', 'transit', _wb('bus'), 'amtrak', 'train', 'railway',
            'irctc', 'redbus', 'abhibus', 'parking', 'toll', 'e-z pass', 'fastag',
            'netc', 'hertz', 'enterprise rent', 'avis', 'budget rent', 'turo',
            'zipcar', 'zoomcar', 'drivezy', 'revv',
        ),
        query_aliases=(
            'transport', 'transportation', 'uber', 'lyft', 'taxi', 'cab', 'parking',
            'car', 'commute', 'ride', 'metro',
        ),
        llm_guideline='Cab/taxi/metro/train/bus/toll/parking, Uber, Ola, Yulu, ride-hailing',
        amount_hints=AmountHint(2, 5000),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('ride-hailing', 'Ride-hailing', 1, icon='🚕'),
            SubcategoryDefinition('public-transit', 'Public Transit', 2, icon='🚇'),
            SubcategoryDefinition('parking-tolls', 'Parking & Tolls', 3, icon='🅿️'),
            SubcategoryDefinition('car-rental', 'Car Rental', 4, icon='🚙'),
        ),
    ),
    CategoryDefinition(
        slug='gas-fuel',
        name='Gas & Fuel',
        icon='⛽',
        color='#ea580c',
        sort_order=5,
        is_default=True,
        vendor_patterns=(
            _wb('shell', 'hotel', 'beach', 'resort', 'sea'),
            'exxon', 'mobil', 'chevron', _wb('bp'), 'citgo', 'sunoco',
            _wb('marathon', 'marathon sports', 'marathon run'),
            'valero', 'phillips 66', 'speedway', 'racetrac', 'gas station',
            _wb('fuel'), 'petrol', 'diesel', 'indian oil', 'bharat petroleum',
            'hindustan petroleum', 'hp petrol', 'ev charging', 'chargepoint',
            'tesla supercharger',
        ),
        query_aliases=('gas', 'fuel', 'petrol', 'diesel', 'gas station', 'filling station', 'ev charging'),
        llm_guideline='Gas stations, petrol pumps, fuel, EV charging',
        amount_hints=AmountHint(10, 5000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='entertainment',
        name='Entertainment',
        icon='🎬',
        color='#8b5cf6',
        sort_order=6,
        is_default=True,
        vendor_patterns=(
            'netflix', 'hulu', 'disney+', 'disney plus', 'hbo',
            _wb('max', 'max life', 'max healthcare', 'max bupa'),
            'paramount', 'peacock', 'apple tv', 'amazon prime', 'prime video',
            'spotify', 'apple music', 'youtube', 'audible', 'kindle', 'xbox',
            'playstation', 'nintendo', 'steam', 'epic games', 'amc theatre',
            'regal cinema', 'cinemark', 'fandango', 'ticketmaster', 'stubhub',
            'live nation', 'eventbrite', 'movie', 'theater', 'theatre', 'concert',
            _wb('show', 'showroom'), _wb('game', 'game changer'),
            'hotstar', 'jiocinema', 'zee5', 'sonyliv', 'pvr', 'inox', 'bookmyshow',
        ),
        query_aliases=(
            'entertainment', 'movie', 'movies', 'cinema', 'concert', 'show',
            'streaming', 'netflix', 'spotify', 'gaming',
        ),
        llm_guideline='Streaming services, movies, concerts, gaming, entertainment venues',
        amount_hints=AmountHint(2, 5000),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('streaming', 'Streaming Services', 1, icon='📺'),
            SubcategoryDefinition('movies-shows', 'Movies & Shows', 2, icon='🎥'),
            SubcategoryDefinition('gaming', 'Gaming', 3, icon='🎮'),
            SubcategoryDefinition('events-concerts', 'Events & Concerts', 4, icon='🎫'),
        ),
    ),
    CategoryDefinition(
        slug='healthcare',
        name='Healthcare',
        icon='🏥',
        color='#ef4444',
        sort_order=7,
        is_default=True,
        vendor_patterns=(
            'cvs', 'walgreens', 'rite aid', 'pharmacy', 'drug store', 'hospital',
            'clinic', 'doctor', 'dentist', 'optometrist', 'urgent care',
            _wb('emergency'), 'medical',
            _wb('health', 'health insurance', 'star health', 'niva bupa', 'care health'),
            'labcorp', 'quest diagnostics', _wb('lab', 'lab grown', 'collab'),
            'apollo', 'fortis', 'max healthcare', 'medplus', 'practo', 'pharmeasy',
            '1mg', 'netmeds',
        ),
        query_aliases=(
            'healthcare', 'health', 'medical', 'doctor', 'hospital', 'pharmacy',
            'medicine', 'dentist', 'dental',
        ),
        llm_guideline='Hospitals, clinics, pharmacies, doctors, medical expenses',
        amount_hints=AmountHint(5, 100000),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('pharmacy', 'Pharmacy', 1, icon='💊'),
            SubcategoryDefinition('doctor-visits', 'Doctor Visits', 2, icon='👨‍⚕️'),
            SubcategoryDefinition('hospital', 'Hospital', 3, icon='🏥'),
            SubcategoryDefinition('lab-tests', 'Lab Tests', 4, icon='🔬'),
        ),
    ),
    CategoryDefinition(
        slug='utilities',
        name='Utilities',
        icon='💡',
        color='#06b6d4',
        sort_order=8,
        is_default=True,
        vendor_patterns=(
            'electric', 'power', 'energy', 'water', 'sewer', 'gas bill',
            'natural gas', 'heating', 'internet', 'comcast', 'xfinity', 'at&t',
            'verizon', 'spectrum', 'cox', 't-mobile', 'sprint', 'cricket',
            'phone bill', 'mobile bill', 'broadband', 'wifi', 'jio', 'airtel',
            'vodafone', 'bsnl', 'vi ', 'tata power', 'adani electricity', 'bescom',
            'trash', 'waste', 'sanitation',
        ),
        query_aliases=(
            'utilities', 'electricity', 'water', 'gas', 'internet', 'phone', 'bill',
            'bills', 'recharge', 'broadband',
        ),
        llm_guideline='Jio Fiber, electricity, water, broadband, mobile recharge, phone bills',
        amount_hints=AmountHint(50, 10000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='travel',
        name='Travel',
        icon='✈️',
        color='#14b8a6',
        sort_order=9,
        is_default=True,
        vendor_patterns=(
            'airline', 'flight', 'airfare', 'american airlines', 'delta', 'united',
            'southwest', 'jetblue', 'spirit', 'frontier', 'alaska air', 'air india',
            'indigo', 'vistara', 'spicejet', 'air asia', 'akasa air', 'go first',
            'hotel', 'motel', 'marriott', 'hilton', 'hyatt', 'ihg', 'airbnb', 'vrbo',
            'booking.com', 'expedia', 'hotels.com', 'makemytrip', 'goibibo', 'oyo',
            'cleartrip', 'ixigo', 'yatra', 'easemytrip', 'happyeasygo', 'trivago',
            'kayak', 'priceline', 'resort', 'lodge', _wb('inn'), 'hostel', 'cruise',
            'carnival', 'royal caribbean', 'luggage', 'baggage', 'travel insurance',
            'thomas cook', 'cox & kings', 'sotc', 'club mahindra',
        ),
        query_aliases=(
            'travel', 'trip', 'vacation', 'holiday', 'flight', 'hotel', 'airbnb',
            'booking', 'airline',
        ),
        llm_guideline='Airlines, hotels, booking platforms, airports, travel agencies',
        amount_hints=AmountHint(100, 500000),
        preferred_types=('debit',),
        subcategories=(
            SubcategoryDefinition('flights', 'Flights', 1, icon='✈️'),
            SubcategoryDefinition('hotels-lodging', 'Hotels & Lodging', 2, icon='🏨'),
            SubcategoryDefinition('travel-booking', 'Travel Booking', 3, icon='🗺️'),
        ),
    ),
    CategoryDefinition(
        slug='insurance',
        name='Insurance',
        icon='🛡️',
        color='#0891b2',
        sort_order=10,
        is_default=True,
        vendor_patterns=(
            'geico', 'state farm', 'allstate', 'progressive', 'liberty mutual',
            'farmers', 'usaa', 'nationwide', 'lic', 'hdfc life', 'hdfc ergo',
            'icici prudential', 'icici lombard', 'sbi life', 'max life', 'max bupa',
            'bajaj allianz', 'tata aia', 'kotak life', 'star health', 'niva bupa',
            'care health', 'digit insurance', 'acko', 'policybazaar', 'coverfox',
            'life insurance', 'health insurance', 'term insurance', 'term plan',
            'motor insurance', 'car insurance', 'bike insurance',
            'vehicle insurance', 'mediclaim', 'policy premium',
            'insurance premium', 'policy renewal', _wb('insurance'),
            _wb('premium', 'youtube premium', 'spotify premium', 'linkedin premium'),
            _wb('policy'), 'coverage',
        ),
        query_aliases=(
            'insurance', 'premium', 'life insurance', 'health insurance',
            'car insurance', 'motor insurance', 'term plan', 'policy', 'lic',
            'mediclaim',
        ),
        llm_guideline='Insurance premiums (life, health, motor, term), policy renewals',
        amount_hints=AmountHint(500, 200000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='education',
        name='Education',
        icon='📚',
        color='#ca8a04',
        sort_order=11,
        is_default=True,
        vendor_patterns=(
            'tuition', 'school', 'school fee', 'college', 'college fee',
            'university', 'academy', 'coursera', 'udemy', 'edx', 'skillshare',
            'masterclass', 'brilliant', 'khan academy', 'linkedin learning',
            'textbook', 'book store', 'books', 'stationery', 'barnes & noble',
            'byjus', 'byju', 'unacademy', 'upgrad', 'vedantu', 'student loan',
            'education', 'course fee', 'coaching', 'exam fee', 'training',
            'certification',
        ),
        query_aliases=(
            'education', 'school', 'college', 'university', 'tuition', 'course',
            'training', 'books', 'textbook', 'fees', 'coaching', 'exam',
        ),
        llm_guideline='Tuition fees, courses, books, coaching, online learning platforms',
        amount_hints=AmountHint(10, 500000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='subscriptions',
        name='Subscriptions',
        icon='🔄',
        color='#7c3aed',
        sort_order=12,
        is_default=True,
        vendor_patterns=(
            'subscription', 'membership', 'github', 'gitlab', 'notion', 'slack',
            'zoom', 'adobe', 'creative cloud', 'microsoft 365', 'office 365',
            'google one', 'dropbox', 'icloud', 'evernote', 'canva', 'figma',
            'chatgpt', 'openai', 'grammarly', 'nordvpn', 'expressvpn', 'gym',
            'fitness', 'planet fitness', 'la fitness', 'ymca', 'cult.fit',
            'curefit', 'gold gym', 'anytime fitness', 'newspaper', 'magazine',
            'wall street journal', 'nyt', 'patreon', 'substack', 'cred',
            'gpay rewards',
        ),
        query_aliases=(
            'subscription', 'subscriptions', 'recurring', 'membership', 'plan',
            'premium', 'renewal', 'auto-pay', 'autopay', 'monthly charge',
        ),
        llm_guideline='Apple Services, Spotify, Netflix, software subscriptions, gym memberships',
        amount_hints=AmountHint(2, 5000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='income',
        name='Income',
        icon='💰',
        color='#10b981',
        sort_order=13,
        is_default=True,
        vendor_patterns=(
            'payroll', 'salary', 'direct deposit', 'wage', 'dividend',
            'interest income', 'interest payment', 'tax refund', 'irs',
            'income tax refund', 'venmo payment', 'zelle payment',
            'paypal payment', 'freelance', 'invoice payment',
        ),
        query_aliases=(
            'income', 'salary', 'paycheck', 'payment received', 'deposit', 'earning',
            'earnings', 'wage', 'wages',
        ),
        llm_guideline='Salary, income credits, freelance payments, dividends',
        preferred_types=('credit', 'payment'),
    ),
    CategoryDefinition(
        slug='transfers',
        name='Transfers',
        icon='🔀',
        color='#6366f1',
        sort_order=14,
        is_default=True,
        vendor_patterns=(
            'transfer', 'wire transfer', _wb('ach'), 'venmo', 'zelle', 'paypal',
            'cash app', 'cashapp', 'google pay', 'gpay', 'phonepe', 'paytm',
            _wb('upi'), 'bank transfer', 'internal transfer', 'online transfer',
            _wb('neft'), _wb('rtgs'), _wb('imps'), _wb('nach'), _wb('ecs'), 'bhim',
            'mobikwik', 'freecharge',
        ),
        query_aliases=(
            'transfer', 'transfers', 'upi', 'neft', 'rtgs', 'imps', 'wire',
            'remittance', 'sent to', 'received from', 'p2p', 'peer to peer',
        ),
        llm_guideline='ATM withdrawal, personal fund transfers (to people), UPI to individuals',
    ),
    CategoryDefinition(
        slug='rent-housing',
        name='Rent & Housing',
        icon='🏠',
        color='#b45309',
        sort_order=15,
        is_default=True,
        vendor_patterns=(
            'rent', 'mortgage', 'lease', 'landlord', 'property', 'hoa', 'homeowner',
            'condo fee', 'maintenance', 'repair', 'plumbing', 'electrician',
            'pest control', 'cleaning service', 'maid',
        ),
        query_aliases=(
            'rent', 'lease', 'rental', 'landlord', 'tenant', 'housing',
            'accommodation', 'mortgage',
        ),
        llm_guideline='Rent, mortgage, maintenance, housing-related expenses',
        amount_hints=AmountHint(1000, 200000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='personal-care',
        name='Personal Care',
        icon='💆',
        color='#e879f9',
        sort_order=16,
        is_default=True,
        vendor_patterns=(
            'salon', 'barber', 'spa', 'massage', 'nail', 'beauty', 'cosmetic',
            'skincare', 'sephora', 'ulta', 'dry cleaner', 'laundry', 'tailor',
        ),
        query_aliases=(
            'personal care', 'salon', 'barber', 'spa', 'beauty', 'grooming',
            'haircut', 'laundry',
        ),
        llm_guideline='Salons, spas, beauty, grooming, dry cleaning',
        amount_hints=AmountHint(5, 5000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='fees-charges',
        name='Fees & Charges',
        icon='💳',
        color='#f43f5e',
        sort_order=17,
        is_default=True,
        vendor_patterns=(
            'annual fee', 'monthly fee', 'service fee', 'late fee', 'overdraft',
            'nsf fee', 'atm fee', 'foreign transaction fee', 'finance charge',
            'interest charge', 'minimum interest', 'membership fee',
            'convenience fee',
        ),
        query_aliases=(
            'fees', 'charges', 'fee', 'charge', 'penalty', 'late fee', 'interest',
            'finance charge', 'annual fee',
        ),
        llm_guideline=(
            'Annual fee, late fee, interest charge, finance charge, service charge, '
            'CRED, credit card bill payments'
        ),
        amount_hints=AmountHint(1, 50000),
        preferred_types=('debit', 'fee', 'interest'),
    ),
    CategoryDefinition(
        slug='investments',
        name='Investments',
        icon='📈',
        color='#059669',
        sort_order=18,
        is_default=True,
        vendor_patterns=(
            # Brokerages & trading platforms
            'zerodha', 'groww', 'upstox', 'angel', 'angel one', 'kite',
            _wb('coin', 'coinbase'), 'motilal oswal', 'icici direct',
            'hdfc securities', 'kotak securities', 'sharekhan', '5paisa',
            'paytm money', 'et money', 'smallcase', 'kuvera', 'vested',
            'robinhood', 'fidelity', 'schwab', 'vanguard', 'e*trade',
            'td ameritrade', 'webull',
            # Instruments
            'mutual fund', _wb('sip'), _wb('nps'), _wb('ppf'), _wb('epf'),
            'fixed deposit', 'recurring deposit', 'fd renewal', 'rd instalment',
            'demat', 'nsdl', 'cdsl', 'stock purchase', 'share purchase',
            'investment', 'bond purchase', 'sovereign gold bond', _wb('sgb'),
        ),
        query_aliases=(
            'investment', 'investments', 'invest', 'invested', 'mutual fund',
            'mutual funds', 'mf', 'sip', 'stocks', 'stock', 'shares', 'equity',
            'bonds', 'bond', 'fixed deposit', 'fd', 'rd', 'recurring deposit',
            'nps', 'ppf', 'epf', 'provident fund', 'demat', 'trading', 'portfolio',
            'dividend', 'dividends', 'capital gains', 'groww', 'zerodha',
            'etmoney', 'et money', 'upstox', 'kuvera', 'smallcase', 'coin',
            'angel one', 'paytm money', '5paisa', 'vested',
        ),
        llm_guideline=(
            'Groww, Zerodha, mutual fund SIPs, stock purchases, fixed deposits, '
            'ACH/Indian Clearing Corp (if amount pattern suggests SIP)'
        ),
        amount_hints=AmountHint(100, 5000000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='emi-loans',
        name='EMI & Loans',
        icon='🏦',
        color='#dc2626',
        sort_order=19,
        is_default=True,
        vendor_patterns=(
            'emi', 'home loan', 'car loan', 'personal loan', 'education loan',
            'loan repayment', 'instalment', 'installment', 'equated monthly',
            'loan emi', 'credit card emi',
        ),
        query_aliases=(
            'emi', 'loan', 'instalment', 'installment', 'mortgage', 'home loan',
            'car loan', 'personal loan', 'repayment',
        ),
        llm_guideline='EMI payments, loan repayments, installments',
        amount_hints=AmountHint(500, 500000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='taxes',
        name='Taxes',
        icon='🏛️',
        color='#475569',
        sort_order=20,
        is_default=True,
        vendor_patterns=(
            'income tax', 'advance tax', 'self assessment tax', _wb('tds'),
            _wb('gst'), 'property tax', 'road tax', 'professional tax',
            'tax payment', 'challan',
        ),
        query_aliases=(
            'tax', 'taxes', 'income tax', 'gst', 'tds', 'property tax', 'tax return',
            'tax refund',
        ),
        llm_guideline='Income tax, advance tax, GST, TDS, property tax, challans',
        amount_hints=AmountHint(100, 5000000),
        preferred_types=('debit',),
    ),
    CategoryDefinition(
        slug='other',
        name='Other',
        icon='📦',
        color='#6b7280',
        sort_order=99,
        is_default=True,
        vendor_patterns=(),
        query_aliases=('other', 'miscellaneous', 'uncategorized', 'unknown'),
        llm_guideline='Only use when no other category fits',
    ),
)

# Old database names mapped to canonical registry names
CATEGORY_RENAME_MAP: Dict[str, str] = {
    'Dining': 'Food & Dining',
    'Transport': 'Transportation',
    'Rent': 'Rent & Housing',
}

_SLUG_MAP: Dict[str, CategoryDefinition] = {c.slug: c for c in CATEGORY_REGISTRY}
_NAME_MAP: Dict[str, CategoryDefinition] = {c.name.lower(): c for c in CATEGORY_REGISTRY}


def get_category_by_slug(slug: str) -> Optional[CategoryDefinition]:
    return _SLUG_MAP.get(slug)


def get_category_by_name(name: str) -> Optional[CategoryDefinition]:
    """Case-insensitive lookup by display name; old names resolve through CATEGORY_RENAME_MAP."""
    name = CATEGORY_RENAME_MAP.get(name, name)
    return _NAME_MAP.get(name.lower())


def all_category_names() -> List[str]:
    return [c.name for c in CATEGORY_REGISTRY]


def vendor_rules_map() -> Dict[str, List[VendorKeyword]]:
    """Category name -> vendor keyword patterns, in registry order."""
    return {
        c.name: list(c.vendor_patterns)
        for c in CATEGORY_REGISTRY
        if c.vendor_patterns
    }


def amount_hint_map() -> Dict[str, AmountHint]:
    return {c.name: c.amount_hints for c in CATEGORY_REGISTRY if c.amount_hints}


def preferred_type_map() -> Dict[str, List[str]]:
    return {
        c.name: list(c.preferred_types)
        for c in CATEGORY_REGISTRY
        if c.preferred_types
    }


def query_alias_map() -> Dict[str, List[str]]:
    return {
        c.name: list(c.query_aliases)
        for c in CATEGORY_REGISTRY
        if c.query_aliases
    }


def build_llm_category_block() -> str:
    """
    Build the allowed-categories block sent with LLM parse requests.

    Returns:
        Multi-line string listing category names and their guidelines
    """
    assignable = [c for c in CATEGORY_REGISTRY if c.slug != 'other']
    names = ', '.join(c.name for c in assignable)
    guidelines = '\n'.join(
        f"   - {c.name}: {c.llm_guideline}" for c in assignable if c.llm_guideline
    )
    return (
        f"Allowed categories: {names}.\n"
        f"   Guidelines for category assignment:\n{guidelines}\n"
        f"   - If truly uncertain, use \"Shopping\" as default for purchases."
    )


def default_category_seeds() -> List[dict]:
    """Top-level category rows for seeding a new user's categories."""
    return [
        {
            'name': c.name,
            'icon': c.icon,
            'color': c.color,
            'sort_order': c.sort_order,
            'is_default': True,
            'parent_id': None,
        }
        for c in CATEGORY_REGISTRY
        if c.is_default
    ]


def subcategory_seeds() -> List[dict]:
    """Sub-category rows; icon and color fall back to the parent's."""
    seeds = []
    for c in CATEGORY_REGISTRY:
        for sub in c.subcategories:
            seeds.append({
                'parent_slug': c.slug,
                'parent_name': c.name,
                'slug': sub.slug,
                'name': sub.name,
                'icon': sub.icon or c.icon,
                'color': sub.color or c.color,
                'sort_order': sub.sort_order,
            })
    return seeds


def subcategory_map() -> Dict[str, List[str]]:
    return {
        c.name: [s.name for s in c.subcategories]
        for c in CATEGORY_REGISTRY
        if c.subcategories
    }
